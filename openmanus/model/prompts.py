from datetime import datetime

# ======================================================================
# Helper Time Function
# ======================================================================


def get_current_time() -> str:
    """Returns the current date formatted for prompts, e.g. 'Thursday, January 22, 2026'."""
    return datetime.now().strftime("%A, %B %d, %Y")


# ======================================================================
# Agent Prompts
# ======================================================================

SYSTEM_PROMPT = """You are OpenManus, a capable AI assistant.

You can call tools to gather information and take actions on the user's behalf.
Work step by step: call one tool at a time, read its result, and decide what to do next.
When you have enough information, answer the user directly without calling a tool.
Answer politely, accurately and in the language of the user.
"""

CHAT_SYSTEM_PROMPT = """You are OpenManus, a capable AI assistant.
Answer the user's questions politely and accurately."""

PLAN_SYSTEM_PROMPT = """You are the planning component of OpenManus.
Your job is to break the user's latest request into a short ordered plan before any tool is called.

Rules:
- Use at most 5 steps; each step is one short sentence.
- Only mention tools from the list of available tools.
- If the request can be answered directly (greetings, simple questions), return an empty list.

Return a JSON object:
{"steps": ["first step", "second step"]}
"""


def build_plan_prompt(request: str, tool_descriptions: str) -> str:
    """Build the user prompt for the planning call."""
    tools_section = tool_descriptions or "(no tools available)"
    return f"""Today is {get_current_time()}.

Available tools:
{tools_section}

User request:
{request}

Return the plan as JSON."""


def build_budget_exhausted_answer(max_steps: int, last_observation: str | None) -> str:
    """Best-effort answer when the step budget runs out."""
    if not last_observation:
        return f"I reached the maximum number of steps ({max_steps}) without finishing the task."
    return (
        f"I reached the maximum number of steps ({max_steps}) before finishing. "
        f"The last result I obtained was:\n\n{last_observation}"
    )
