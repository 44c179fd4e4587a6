"""Token budgeting and streaming orchestration for a single completion exchange."""

from .budget import TokenBudget, calculate_token_budget
from .streaming import StreamingOrchestrator, StreamingResult, StreamState

__all__ = [
    "TokenBudget",
    "calculate_token_budget",
    "StreamingOrchestrator",
    "StreamingResult",
    "StreamState",
]
