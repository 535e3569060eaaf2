"""Guided conversation state machine.

States: inactive -> active(step 0..N-1) -> inactive. Answering the last
step runs the template's completion handler and clears the state.
Callers keep guided conversations and free chat from interleaving.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Protocol

from habit_coach.guided.templates import (
    build_if_then_text,
    build_trigger_summary,
    get_current_step,
    get_guided_template,
    is_last_step,
    map_alternative_to_if_then_plan,
)
from habit_coach.memory.manager import MemoryManager
from habit_coach.memory.records import RecordsLog
from habit_coach.models.guided import GuidedConversationState, IfThenPlan
from habit_coach.models.memory import AIIfThenPlan

logger = logging.getLogger(__name__)

CompletionHandler = Callable[[dict[str, str]], Awaitable[None]]

DEFAULT_URGE_INTENSITY = 5
SUCCESS_STRATEGY_EFFECTIVENESS = 1.0


class PlanSink(Protocol):
    """The slice of application settings that receives if-then plans."""

    def set_plan(self, plan: IfThenPlan) -> None: ...


class InMemoryAppSettings:
    """Holds the current if-then plan for the process."""

    def __init__(self) -> None:
        self.if_then_plan: IfThenPlan | None = None

    def set_plan(self, plan: IfThenPlan) -> None:
        self.if_then_plan = plan
        logger.info("If-then plan set: %s", plan.custom_action or plan.action)


def parse_intensity(raw: str) -> int:
    """Leading integer of ``raw`` clamped to 1..10, default 5."""
    match = re.match(r"\s*(\d+)", raw or "")
    if match is None:
        return DEFAULT_URGE_INTENSITY
    return min(10, max(1, int(match.group(1))))


class GuidedConversationMachine:
    def __init__(
        self,
        memory: MemoryManager,
        plan_sink: PlanSink,
        records: RecordsLog,
    ) -> None:
        self._memory = memory
        self._plan_sink = plan_sink
        self._records = records
        self._state: GuidedConversationState | None = None
        self._handlers: dict[str, CompletionHandler] = {
            "if-then": self._complete_if_then,
            "trigger-analysis": self._complete_trigger_analysis,
            "urge-record": self._complete_urge_record,
            "success-record": self._complete_success_record,
        }

    @property
    def state(self) -> GuidedConversationState | None:
        return self._state

    def register_handler(self, template_id: str, handler: CompletionHandler) -> None:
        self._handlers[template_id] = handler

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_guided_conversation(self, template_id: str) -> GuidedConversationState | None:
        """Begin ``template_id`` at step 0. Unknown ids leave state untouched."""
        if get_guided_template(template_id) is None:
            logger.warning("Unknown guided template: %s", template_id)
            return None
        if self._state is not None:
            logger.info("Replacing active guided conversation %s", self._state.template_id)
        self._state = GuidedConversationState(template_id=template_id)
        return self._state

    async def advance_guided_step(self, response: str) -> GuidedConversationState | None:
        """Record ``response`` for the current step.

        Returns the updated state, or None once the conversation completed
        (or when none was active).
        """
        state = self._state
        if state is None or not state.is_active:
            logger.warning("advance_guided_step called with no active guided conversation")
            return None

        step = get_current_step(state.template_id, state.current_step_index)
        if step is None:
            logger.error(
                "Step %d missing from template %s", state.current_step_index, state.template_id
            )
            self._state = None
            return None

        state.responses[step.id] = response
        if is_last_step(state.template_id, state.current_step_index):
            await self._complete(state)
            return None

        state.current_step_index += 1
        return state

    def cancel_guided_conversation(self) -> None:
        if self._state is not None:
            logger.info("Guided conversation %s cancelled", self._state.template_id)
        self._state = None

    async def _complete(self, state: GuidedConversationState) -> None:
        handler = self._handlers.get(state.template_id)
        try:
            if handler is None:
                logger.warning("No completion handler for %s", state.template_id)
            else:
                await handler(dict(state.responses))
                logger.info("Guided conversation %s completed", state.template_id)
        except Exception:
            logger.exception("Error completing guided conversation %s", state.template_id)
        finally:
            self._state = None

    # ------------------------------------------------------------------
    # Completion handlers
    # ------------------------------------------------------------------

    async def _complete_if_then(self, responses: dict[str, str]) -> None:
        trigger = responses.get("trigger") or None
        plan = map_alternative_to_if_then_plan(responses.get("alternative", ""), trigger)
        if plan is None:
            logger.info("If-then conversation finished without an alternative")
            return
        self._plan_sink.set_plan(plan)

        if trigger:
            self._memory.add_plan(
                AIIfThenPlan(
                    trigger=trigger,
                    action=responses["alternative"],
                    context=build_if_then_text(responses) or None,
                )
            )
            await self._memory.save()

    async def _complete_trigger_analysis(self, responses: dict[str, str]) -> None:
        summary = build_trigger_summary(responses)
        self._memory.add_trigger(f"{summary['situation']} ({summary['emotion']})")
        await self._memory.save()

    async def _complete_urge_record(self, responses: dict[str, str]) -> None:
        self._records.add_urge_record(
            intensity=parse_intensity(responses.get("intensity", "")),
            trigger=responses.get("trigger", ""),
            feeling=responses.get("feeling", ""),
        )
        await self._records.save()

    async def _complete_success_record(self, responses: dict[str, str]) -> None:
        method = responses.get("method", "")
        self._records.add_success_record(
            method=method,
            feeling=responses.get("feeling", ""),
            tip=responses.get("tip", ""),
        )
        await self._records.save()
        if method:
            self._memory.add_strategy(method, SUCCESS_STRATEGY_EFFECTIVENESS)
            await self._memory.save()
