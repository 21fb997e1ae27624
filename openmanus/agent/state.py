from enum import Enum

# ======================================================================
## Agent States
# ======================================================================


class AgentState(Enum):
    IDLE = "idle"
    PLANNING = "planning"
    THINKING = "thinking"
    ACTING = "acting"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"
