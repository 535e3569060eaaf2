"""Prompt construction under a fixed context-window budget.

Assembly priority, highest first:
    persona + mode instruction  (never dropped)
    new user message            (never dropped; too large -> PromptTooLargeError)
    user profile and stats      (dropped whole when over its own budget or the window)
    recent conversation history (oldest lines dropped first)
    long-term memory summary    (dropped whole when it no longer fits)

Every limit comes from a ``PromptBudget``, normally built from the
injected ``Settings``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from habit_coach.agent.context import build_training_context, build_user_context
from habit_coach.config import Settings, get_settings
from habit_coach.models.context import UserContext
from habit_coach.models.memory import LongTermMemory
from habit_coach.models.messages import Message, MessageRole
from habit_coach.personality.loader import get_label, get_personality
from habit_coach.utils.tokens import estimate_tokens

logger = logging.getLogger(__name__)

DEFAULT_MODE = "free"
TRAINING_MODE = "training"
SUMMARY_HEADER = "## これまでの気づき"
HISTORY_HEADER = "## 最近の会話"


class PromptTooLargeError(ValueError):
    """The new user message alone does not fit the context window."""


class PromptBudget(BaseModel):
    """Token limits and summary selection knobs for one assembly."""

    max_context_tokens: int
    response_buffer_tokens: int
    history_token_budget: int
    user_context_token_budget: int
    chars_per_token: float
    summary_max_insights: int
    summary_top_triggers: int
    summary_max_strategies: int
    strategy_effectiveness_threshold: float

    @classmethod
    def from_settings(cls, settings: Settings) -> PromptBudget:
        return cls(
            max_context_tokens=settings.max_context_tokens,
            response_buffer_tokens=settings.response_buffer_tokens,
            history_token_budget=settings.history_token_budget,
            user_context_token_budget=settings.user_context_token_budget,
            chars_per_token=settings.chars_per_token,
            summary_max_insights=settings.summary_max_insights,
            summary_top_triggers=settings.summary_top_triggers,
            summary_max_strategies=settings.summary_max_strategies,
            strategy_effectiveness_threshold=settings.strategy_effectiveness_threshold,
        )

    @property
    def available_tokens(self) -> int:
        """Tokens left for the prompt once the response buffer is reserved."""
        return self.max_context_tokens - self.response_buffer_tokens

    def tokens(self, text: str) -> int:
        return estimate_tokens(text, self.chars_per_token)


def _resolve(budget: PromptBudget | None) -> PromptBudget:
    return budget if budget is not None else PromptBudget.from_settings(get_settings())


class PromptBundle(BaseModel):
    """Everything handed to the generator for one turn."""

    system_prompt: str
    user_message: str
    user_info: str = ""
    conversation_history: str = ""
    long_term_summary: str = ""
    total_tokens: int = 0
    history_messages_dropped: int = 0
    dropped_sections: list[str] = Field(default_factory=list)

    @property
    def user_context(self) -> str:
        sections = []
        if self.user_info:
            sections.append(self.user_info)
        if self.long_term_summary:
            sections.append(f"{SUMMARY_HEADER}\n{self.long_term_summary}")
        if self.conversation_history:
            sections.append(f"{HISTORY_HEADER}\n{self.conversation_history}")
        return "\n\n".join(sections)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def build_system_prompt(persona_id: str, mode_id: str | None = None) -> str:
    """Base prompt + persona voice + conversation-mode instruction.

    Raises:
        ValueError: If the persona or mode is unknown.
    """
    personality = get_personality()
    mode_id = mode_id or DEFAULT_MODE
    try:
        persona = personality["personas"][persona_id]
        mode = personality["modes"][mode_id]
    except KeyError as exc:
        raise ValueError(f"Unknown persona or mode: {exc.args[0]}") from exc
    return personality["base_prompt"] + persona + mode


def build_long_term_summary(
    memory: LongTermMemory | None, budget: PromptBudget | None = None
) -> str:
    """Compact digest of confirmed insights, top triggers and strong strategies.

    Returns an empty string when nothing qualifies; callers omit the section.
    """
    if memory is None:
        return ""
    budget = _resolve(budget)

    parts: list[str] = []

    confirmed = [i for i in memory.confirmed_insights if i.confirmed_by_user]
    confirmed = confirmed[-budget.summary_max_insights :] if budget.summary_max_insights else []
    if confirmed:
        parts.append(get_label("insights") + "、".join(i.content for i in confirmed))

    # sorted() is stable and leaves the stored order untouched
    top_triggers = sorted(
        memory.identified_triggers, key=lambda t: t.frequency, reverse=True
    )[: budget.summary_top_triggers]
    if top_triggers:
        parts.append(get_label("triggers") + "、".join(t.trigger for t in top_triggers))

    strategies = [
        s
        for s in memory.effective_strategies
        if s.effectiveness > budget.strategy_effectiveness_threshold
    ][: budget.summary_max_strategies]
    if strategies:
        parts.append(
            get_label("strategies") + "、".join(s.description for s in strategies)
        )

    return "\n".join(parts)


def _format_line(message: Message) -> str:
    label = get_label("user") if message.role == MessageRole.USER else get_label("assistant")
    return f"{label}: {message.content}"


def _select_history_lines(
    messages: Sequence[Message], token_budget: int, chars_per_token: float | None = None
) -> list[str]:
    """Newest-first selection, returned oldest-first."""
    selected: list[str] = []
    used = 0
    for message in reversed(messages):
        line = _format_line(message)
        line_tokens = estimate_tokens(line, chars_per_token)
        if used + line_tokens > token_budget:
            break
        selected.append(line)
        used += line_tokens
    selected.reverse()
    return selected


def format_conversation_history(
    messages: Sequence[Message],
    token_budget: int | None = None,
    budget: PromptBudget | None = None,
) -> str:
    """Render the most recent messages that fit ``token_budget`` chronologically.

    ``token_budget`` defaults to the budget's history allowance.
    """
    budget = _resolve(budget)
    if token_budget is None:
        token_budget = budget.history_token_budget
    return "\n".join(_select_history_lines(messages, token_budget, budget.chars_per_token))


def would_exceed_context(
    current_tokens: int, added_tokens: int, budget: PromptBudget | None = None
) -> bool:
    budget = _resolve(budget)
    return (
        current_tokens + added_tokens + budget.response_buffer_tokens
        > budget.max_context_tokens
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble_prompt(
    persona_id: str,
    user_message: str,
    history: Sequence[Message] = (),
    memory: LongTermMemory | None = None,
    *,
    mode_id: str | None = None,
    user_context: UserContext | None = None,
    budget: PromptBudget | None = None,
) -> PromptBundle:
    """Build a prompt that always satisfies ``would_exceed_context``.

    ``history`` must not include ``user_message`` itself.

    Raises:
        PromptTooLargeError: If the system prompt plus the user message
            already exceed the context window.
    """
    budget = _resolve(budget)
    system_prompt = build_system_prompt(persona_id, mode_id)
    used = budget.tokens(system_prompt)

    user_tokens = budget.tokens(user_message)
    if would_exceed_context(used, user_tokens, budget):
        raise PromptTooLargeError(
            f"Message needs {user_tokens} tokens but only "
            f"{budget.available_tokens - used} are available"
        )
    used += user_tokens
    bundle = PromptBundle(system_prompt=system_prompt, user_message=user_message)

    if user_context is not None:
        info = build_user_context(user_context, memory)
        if mode_id == TRAINING_MODE:
            info += "\n\n" + build_training_context(user_context.training)
        info_tokens = budget.tokens(info)
        if info_tokens > budget.user_context_token_budget or would_exceed_context(
            used, info_tokens, budget
        ):
            bundle.dropped_sections.append("user_info")
            logger.info("User context dropped (%d tokens over budget)", info_tokens)
        else:
            bundle.user_info = info
            used += info_tokens

    # History: recency-priority truncation within what is left
    remaining = budget.available_tokens - used
    header_tokens = budget.tokens(HISTORY_HEADER)
    lines = _select_history_lines(
        history,
        max(0, min(budget.history_token_budget, remaining - header_tokens)),
        budget.chars_per_token,
    )
    # Joined text can round up past the per-line sum
    while lines and would_exceed_context(
        used, budget.tokens(f"{HISTORY_HEADER}\n" + "\n".join(lines)), budget
    ):
        lines.pop(0)
    if lines:
        bundle.conversation_history = "\n".join(lines)
        used += budget.tokens(f"{HISTORY_HEADER}\n{bundle.conversation_history}")
    bundle.history_messages_dropped = len(history) - len(lines)

    summary = build_long_term_summary(memory, budget)
    if summary:
        summary_tokens = budget.tokens(f"{SUMMARY_HEADER}\n{summary}")
        if would_exceed_context(used, summary_tokens, budget):
            bundle.dropped_sections.append("long_term_summary")
            logger.info("Long-term summary dropped (%d tokens over budget)", summary_tokens)
        else:
            bundle.long_term_summary = summary
            used += summary_tokens

    if bundle.history_messages_dropped:
        logger.debug("Dropped %d oldest history messages", bundle.history_messages_dropped)

    bundle.total_tokens = used
    return bundle
