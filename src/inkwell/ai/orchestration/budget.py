"""Token budget calculation for a single completion call.

The calculator always protects the configured thinking allowance. When the
prompt leaves less room than that, the budget is flagged as too large and the
caller aborts before any request is made instead of accepting a shallower
answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ...services.settings import Configuration
from ..errors import BudgetOverflowError

__all__ = [
    "TokenBudget",
    "calculate_token_budget",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Budget Result
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class TokenBudget:
    """Per-call token budget derived from a prompt size and the configuration.

    Attributes:
        context_window: Total tokens shared by prompt and output.
        prompt_tokens: Tokens in the assembled prompt.
        available_tokens: ``context_window - prompt_tokens``; may be negative.
        max_tokens: Output cap sent with the request.
        thinking_budget: Thinking tokens requested, after capping.
        desired_output_tokens: Tokens reserved for the visible answer.
        max_output_tokens: Upper bound the service accepts for output.
        configured_thinking_budget: Thinking allowance every run must keep.
        max_thinking_budget: Cap applied to ``thinking_budget``.
        was_capped: Whether ``thinking_budget`` was clamped to the cap.
        is_prompt_too_large: Whether the configured allowance cannot be met.
    """

    context_window: int
    prompt_tokens: int
    available_tokens: int
    max_tokens: int
    thinking_budget: int
    desired_output_tokens: int
    max_output_tokens: int
    configured_thinking_budget: int
    max_thinking_budget: int
    was_capped: bool
    is_prompt_too_large: bool

    def ensure_fits(self) -> "TokenBudget":
        """Return ``self`` or raise :class:`BudgetOverflowError`."""
        if self.is_prompt_too_large:
            raise BudgetOverflowError.for_budget(self)
        return self

    def describe(self) -> list[str]:
        """Human-readable token stats, one line per entry."""
        lines = [
            "Token stats:",
            f"Max AI model context window: [{self.context_window}] tokens",
            f"Input prompt tokens: [{self.prompt_tokens}] tokens",
            (
                f"Available tokens: [{self.available_tokens}]  = "
                f"{self.context_window} - {self.prompt_tokens} = context_window - prompt"
            ),
            f"Desired output tokens: [{self.desired_output_tokens}]",
            f"AI model thinking budget: [{self.thinking_budget}] tokens",
            f"Max output tokens: [{self.max_tokens}] tokens",
        ]
        if self.was_capped:
            lines.append(
                f"Warning: thinking budget is larger than {self.max_thinking_budget}, "
                f"set to {self.max_thinking_budget}."
            )
        return lines

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for logging and result stats."""
        return {
            "context_window": self.context_window,
            "prompt_tokens": self.prompt_tokens,
            "available_tokens": self.available_tokens,
            "max_tokens": self.max_tokens,
            "thinking_budget": self.thinking_budget,
            "desired_output_tokens": self.desired_output_tokens,
            "max_output_tokens": self.max_output_tokens,
            "configured_thinking_budget": self.configured_thinking_budget,
            "max_thinking_budget": self.max_thinking_budget,
            "was_capped": self.was_capped,
            "is_prompt_too_large": self.is_prompt_too_large,
        }


# -----------------------------------------------------------------------------
# Calculator
# -----------------------------------------------------------------------------


def calculate_token_budget(prompt_tokens: int, config: Configuration) -> TokenBudget:
    """Compute the budget for a prompt of ``prompt_tokens`` tokens.

    Pure and deterministic. ``available_tokens`` is not clamped so an
    oversized prompt flows through to ``is_prompt_too_large``.

    Raises:
        ValueError: if ``prompt_tokens`` is negative.
    """

    if prompt_tokens < 0:
        raise ValueError(f"prompt_tokens must be non-negative, got {prompt_tokens}")

    available_tokens = config.context_window_tokens - prompt_tokens
    max_tokens = min(available_tokens, config.max_output_tokens)
    thinking_budget = max_tokens - config.desired_output_tokens

    was_capped = thinking_budget > config.max_thinking_budget_tokens
    if was_capped:
        thinking_budget = config.max_thinking_budget_tokens

    is_prompt_too_large = thinking_budget < config.thinking_budget_tokens

    budget = TokenBudget(
        context_window=config.context_window_tokens,
        prompt_tokens=prompt_tokens,
        available_tokens=available_tokens,
        max_tokens=max_tokens,
        thinking_budget=thinking_budget,
        desired_output_tokens=config.desired_output_tokens,
        max_output_tokens=config.max_output_tokens,
        configured_thinking_budget=config.thinking_budget_tokens,
        max_thinking_budget=config.max_thinking_budget_tokens,
        was_capped=was_capped,
        is_prompt_too_large=is_prompt_too_large,
    )
    if is_prompt_too_large:
        LOGGER.warning(
            "Prompt of %d tokens leaves a thinking budget of %d (< configured %d)",
            prompt_tokens,
            thinking_budget,
            config.thinking_budget_tokens,
        )
    else:
        LOGGER.debug("Token budget computed: %s", budget.to_dict())
    return budget
