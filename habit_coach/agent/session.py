"""Active conversation session: send/receive and end-of-session summarization."""

from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime, timezone

from habit_coach.agent.context import UserContextProvider
from habit_coach.agent.generator import ResponseGenerator
from habit_coach.agent.prompts import PromptBudget, assemble_prompt
from habit_coach.config import Settings, get_settings
from habit_coach.memory.insights import extract_insights
from habit_coach.memory.manager import MemoryManager
from habit_coach.models.messages import Message, MessageRole
from habit_coach.models.sessions import Session, SessionEndTrigger, SessionSummary
from habit_coach.personality.loader import get_response
from habit_coach.safety.crisis import handle_crisis_if_detected

logger = logging.getLogger(__name__)

SUMMARY_TOPIC_CHARS = 50


class GenerationInProgressError(RuntimeError):
    """A reply is still being generated for the previous message."""


def summarize_messages(
    messages: list[Message], exclude_ids: Collection[str] = frozenset()
) -> str:
    """Message count plus the opening of the first message not in ``exclude_ids``."""
    topic = next(
        (m.content[:SUMMARY_TOPIC_CHARS] for m in messages if m.id not in exclude_ids), ""
    )
    return f"{len(messages)}回のやりとり。話題: {topic}..."


class SessionManager:
    """Owns the single active ``Session``.

    States: no session -> active -> (end) -> no session.
    """

    def __init__(
        self,
        memory: MemoryManager,
        generator: ResponseGenerator,
        *,
        persona_id: str = "supportive",
        settings: Settings | None = None,
        context_provider: UserContextProvider | None = None,
    ) -> None:
        self._memory = memory
        self._generator = generator
        self.persona_id = persona_id
        self._settings = settings or get_settings()
        self._budget = PromptBudget.from_settings(self._settings)
        self._context_provider = context_provider
        self._session: Session | None = None
        self._is_generating = False
        # Crisis exchanges; never mined for insights or summarized
        self._crisis_message_ids: set[str] = set()

    @property
    def current_session(self) -> Session | None:
        return self._session

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(self, mode_id: str = "free") -> Session:
        """Start a session; returns the active one unchanged if it exists."""
        if self._session is not None:
            logger.debug("Session %s already active - start ignored", self._session.id)
            return self._session
        self._session = Session(mode_id=mode_id)
        logger.info("Session %s started (mode=%s)", self._session.id, mode_id)
        return self._session

    async def end_session(
        self, trigger: SessionEndTrigger = SessionEndTrigger.USER_EXPLICIT
    ) -> SessionSummary | None:
        """Summarize and clear the active session, then persist memory.

        An empty session is cleared without producing a summary. The session
        is always cleared, and nothing is persisted while memory is unloaded.
        """
        session = self._session
        if session is None or not session.messages:
            self._clear()
            return None

        try:
            eligible = [m for m in session.messages if m.id not in self._crisis_message_ids]
            insights = extract_insights(
                eligible,
                max_insights=self._settings.max_extracted_insights,
                min_length=self._settings.min_insight_length,
            )
            elapsed = datetime.now(timezone.utc) - session.started_at
            summary = SessionSummary(
                session_id=session.id,
                summary=summarize_messages(session.messages, self._crisis_message_ids),
                insights=insights,
                message_count=len(session.messages),
                duration_minutes=round(elapsed.total_seconds() / 60),
            )
        finally:
            self._clear()

        if not self._memory.is_loaded:
            logger.warning("Memory not loaded - summary of session %s not persisted", session.id)
            return summary

        self._memory.add_session_summary(summary)
        if insights:
            self._memory.add_insights(insights)

        logger.info(
            "Session %s ended (trigger=%s, messages=%d, insights=%d)",
            session.id,
            trigger.value,
            summary.message_count,
            len(insights),
        )
        await self._memory.save()
        return summary

    def _clear(self) -> None:
        self._session = None
        self._crisis_message_ids.clear()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def add_ai_greeting(self, text: str) -> Message:
        session = self.start_session()
        return self._append(session, Message.create(MessageRole.ASSISTANT, text))

    async def send_message(self, text: str) -> Message:
        """Append ``text`` and return the assistant reply that follows it.

        Raises:
            GenerationInProgressError: If a reply is already being generated.
            PromptTooLargeError: If ``text`` alone cannot fit the context
                window. Nothing is appended in that case.
        """
        if self._is_generating:
            raise GenerationInProgressError("A reply is already being generated")

        session = self.start_session()

        crisis_reply = handle_crisis_if_detected(text)
        if crisis_reply is not None:
            user_message = self._append(session, Message.create(MessageRole.USER, text))
            self._crisis_message_ids.add(user_message.id)
            logger.warning("Crisis response sent in session %s", session.id)
            reply = self._append(session, Message.create(MessageRole.ASSISTANT, crisis_reply))
            self._crisis_message_ids.add(reply.id)
            return reply

        history = list(session.messages)
        memory = self._memory.long_term_memory if self._memory.is_loaded else None
        user_context = (
            self._context_provider.get_user_context() if self._context_provider else None
        )
        bundle = assemble_prompt(
            self.persona_id,
            text,
            history,
            memory,
            mode_id=session.mode_id,
            user_context=user_context,
            budget=self._budget,
        )

        user_message = self._append(session, Message.create(MessageRole.USER, text))
        self._is_generating = True
        try:
            reply = await self._generator.generate(
                list(session.messages), bundle.system_prompt, bundle.user_context
            )
        except Exception:
            logger.exception("Reply generation failed for message %s", user_message.id)
            reply = get_response("generation_error")
        finally:
            self._is_generating = False

        return self._append(session, Message.create(MessageRole.ASSISTANT, reply))

    def _append(self, session: Session, message: Message) -> Message:
        session.messages.append(message)
        session.last_activity_at = message.timestamp
        return message
