from langchain_core.tools import tool

from openmanus.agent import AgentConfig, FinalResponseEvent, encode_sse
from openmanus.model import ProviderConfig
from openmanus.service import AgentService


@tool
def get_weather(city: str) -> str:
    """Get the current weather for a city."""
    return f"Sunny, 22C in {city}"


async def main():
    # Reads OPENAI_API_KEY / OPENAI_BASE_URL / LLM_MODEL from the environment (.env supported)
    service = AgentService(
        provider_config=ProviderConfig.from_env(),
        agent_config=AgentConfig(max_steps=5),
        tools_factory=lambda: [get_weather],
    )

    session_id = "example-basic"

    print("OpenManus basic example\n")

    # Example 1: stream progress events as SSE frames
    print("Example 1: weather lookup with a tool\n")

    async for event in service.stream(session_id, "What's the weather in Tokyo?"):
        print(encode_sse(event), end="")
        if isinstance(event, FinalResponseEvent):
            print(f"Response: {event.response}")

    # Example 2: follow-up in the same session reuses the conversation
    print("\nExample 2: follow-up question\n")

    answer = await service.run(session_id, "And should I bring an umbrella?")
    print(f"Response: {answer}")

    for message in service.get_messages(session_id):
        print(f"[{message.role.value}] {message.content[:60]}")

    # Example 3: plain chat without tools or session state
    result = await service.chat("Say hello in French.")
    print(f"\nChat: {result.response}")

    await service.teardown(session_id)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
