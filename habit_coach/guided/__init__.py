"""Guided conversations - step templates and the state machine that runs them."""

from .machine import GuidedConversationMachine, InMemoryAppSettings, PlanSink
from .templates import GUIDED_TEMPLATES, get_guided_template

__all__ = [
    "GUIDED_TEMPLATES",
    "GuidedConversationMachine",
    "InMemoryAppSettings",
    "PlanSink",
    "get_guided_template",
]
