"""Conversation stage machine for the legal intake flow.

Each incoming message is routed by the session's ``Phase``:

* INTAKE: classify the issue, acknowledge it, ask for incident detail.
* COLLECTING_DETAILS: record one answer per fixed question, then produce
  the advice reply together with the legal summary block.
* ADVISED_AWAITING_CHOICE: answer the case-history offer made with the advice.
* ADVISED: open-ended follow-up guidance.

Generation happens before any session field is touched, so a failed call
leaves the session exactly as it was and the same message can be retried.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from ..knowledge import INCIDENT_QUESTIONS, IssueCategory, classify_issue, format_legal_summary
from ..models import Phase, Session, Turn
from ..services.generation import GenerationParams, GenerationRequest, GenerationResult
from ..settings import get_settings
from . import prompts

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        ...


class GenerationUnavailable(Exception):
    """The generation service failed for this turn; the session was not modified."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"generation failed for session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


@dataclass
class StageOutcome:
    reply: str
    legal_summary: Optional[str] = None


Handler = Callable[[Session, str], Awaitable[StageOutcome]]


class ConversationStageMachine:
    def __init__(
        self,
        generator: TextGenerator,
        assistant_name: str | None = None,
        history_max_turns: int | None = None,
    ) -> None:
        settings = get_settings()
        self._generator = generator
        self._assistant_name = assistant_name or settings.assistant_name
        self._history_max_turns = (
            settings.history_max_turns if history_max_turns is None else history_max_turns
        )
        self._handlers: Dict[Phase, Handler] = {
            Phase.INTAKE: self._handle_intake,
            Phase.COLLECTING_DETAILS: self._handle_detail,
            Phase.ADVISED_AWAITING_CHOICE: self._handle_case_history_choice,
            Phase.ADVISED: self._handle_follow_up,
        }

    async def advance(self, session: Session, message: str) -> StageOutcome:
        """Process one user message, mutating ``session`` and returning the reply.

        Raises:
            GenerationUnavailable: the generation service failed; ``session`` is unchanged.
        """
        phase = session.phase
        outcome = await self._handlers[phase](session, message)
        session.record_exchange(message, outcome.reply)
        if session.phase is not phase:
            logger.info(
                "Session %s: %s -> %s", session.session_id, phase.value, session.phase.value
            )
        return outcome

    def _history(self, session: Session) -> List[Turn]:
        if self._history_max_turns > 0:
            return session.turns[-self._history_max_turns:]
        return list(session.turns)

    async def _generate(
        self, session: Session, preamble: str, message: str, params: GenerationParams
    ) -> str:
        result = await self._generator.generate(
            GenerationRequest(
                preamble=preamble,
                history=self._history(session),
                message=message,
                params=params,
            )
        )
        if not result.ok:
            raise GenerationUnavailable(session.session_id, result.error or "unknown error")
        return result.text

    @staticmethod
    def _category(session: Session) -> IssueCategory:
        if session.category is None:
            raise RuntimeError(
                f"Session {session.session_id} reached {session.phase.value} without a category"
            )
        return session.category

    async def _handle_intake(self, session: Session, message: str) -> StageOutcome:
        category = classify_issue(message)
        logger.info("Session %s: detected issue %s", session.session_id, category.value)
        text = await self._generate(
            session,
            prompts.intake_preamble(self._assistant_name, category),
            message,
            prompts.INTAKE_PARAMS,
        )
        session.assign_category(category)
        session.phase = Phase.COLLECTING_DETAILS
        session.detail_index = 0
        return StageOutcome(reply=f"{text}\n\n{prompts.DETAIL_FOLLOW_UP}")

    async def _handle_detail(self, session: Session, message: str) -> StageOutcome:
        if session.detail_index < len(INCIDENT_QUESTIONS) - 1:
            session.collected_details.append(message)
            session.detail_index += 1
            return StageOutcome(reply=INCIDENT_QUESTIONS[session.detail_index])

        category = self._category(session)
        details = session.collected_details + [message]
        text = await self._generate(
            session,
            prompts.summary_preamble(self._assistant_name, category, details),
            message,
            prompts.SUMMARY_PARAMS,
        )
        session.collected_details.append(message)
        session.advice_given = True
        session.phase = Phase.ADVISED_AWAITING_CHOICE
        return StageOutcome(
            reply=f"{text}\n\n{prompts.CASE_HISTORY_OFFER}",
            legal_summary=format_legal_summary(category),
        )

    async def _handle_case_history_choice(self, session: Session, message: str) -> StageOutcome:
        if not prompts.is_affirmative(message):
            session.phase = Phase.ADVISED
            return StageOutcome(reply=prompts.CASE_HISTORY_DECLINED)

        text = await self._generate(
            session,
            prompts.case_history_preamble(self._category(session)),
            message,
            prompts.CASE_HISTORY_PARAMS,
        )
        session.phase = Phase.ADVISED
        return StageOutcome(reply=text)

    async def _handle_follow_up(self, session: Session, message: str) -> StageOutcome:
        text = await self._generate(
            session,
            prompts.continuation_preamble(self._assistant_name, self._category(session)),
            message,
            prompts.CONTINUATION_PARAMS,
        )
        return StageOutcome(reply=text)
