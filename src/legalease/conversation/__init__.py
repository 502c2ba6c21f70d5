"""Intake conversation: the stage machine and the chat service around it."""

from .service import GENERATION_UNAVAILABLE, SESSION_UNAVAILABLE, IntakeChatService
from .stage_machine import ConversationStageMachine, GenerationUnavailable, StageOutcome

__all__ = [
    "GENERATION_UNAVAILABLE",
    "SESSION_UNAVAILABLE",
    "ConversationStageMachine",
    "GenerationUnavailable",
    "IntakeChatService",
    "StageOutcome",
]
