import asyncio
import contextlib
import logging
from typing import Protocol

from ..models import ChatReply
from ..services.session_store import SessionLocks, SessionStore, SessionUnavailable
from ..settings import get_settings
from .stage_machine import ConversationStageMachine, GenerationUnavailable

logger = logging.getLogger(__name__)

GENERATION_UNAVAILABLE = "generation_unavailable"
SESSION_UNAVAILABLE = "session_unavailable"


async def _cancel(task: "asyncio.Task[str]") -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


class EmotionDetector(Protocol):
    async def detect(self, message: str) -> str:
        ...


class IntakeChatService:
    """Runs one chat turn: per-session lock, load, emotion + stage machine, save."""

    def __init__(
        self,
        store: SessionStore,
        machine: ConversationStageMachine,
        emotions: EmotionDetector,
        degraded_reply: str | None = None,
    ) -> None:
        self._store = store
        self._machine = machine
        self._emotions = emotions
        self._locks = SessionLocks()
        self._degraded_reply = degraded_reply or get_settings().degraded_reply

    @property
    def store(self) -> SessionStore:
        return self._store

    async def handle_message(self, session_id: str, message: str) -> ChatReply:
        """Process a user message for session_id and return the reply payload.

        Turns for the same session are handled one at a time. When the
        generation service or the session store fails the stored session is
        left untouched and a degraded reply carrying an error marker is
        returned instead.
        """
        async with self._locks.hold(session_id):
            emotion_task = asyncio.create_task(self._emotions.detect(message))
            try:
                session = await self._store.get_or_create(session_id)
            except SessionUnavailable as e:
                logger.error("Session %s: %s", session_id, e)
                return ChatReply(
                    reply=self._degraded_reply,
                    emotion=await emotion_task,
                    error=SESSION_UNAVAILABLE,
                )
            except BaseException:
                await _cancel(emotion_task)
                raise

            try:
                outcome = await self._machine.advance(session, message)
            except GenerationUnavailable as e:
                logger.error("Session %s: %s", session_id, e)
                return ChatReply(
                    reply=self._degraded_reply,
                    emotion=await emotion_task,
                    error=GENERATION_UNAVAILABLE,
                )
            except BaseException:
                await _cancel(emotion_task)
                raise
            emotion = await emotion_task
            await self._store.save(session)

        logger.info(
            "Session %s: replied in stage %s (emotion=%s)",
            session_id,
            session.stage.value,
            emotion,
        )
        return ChatReply(reply=outcome.reply, emotion=emotion, legal_summary=outcome.legal_summary)
