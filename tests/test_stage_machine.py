import pytest

from legalease.conversation import ConversationStageMachine, GenerationUnavailable
from legalease.conversation import prompts
from legalease.knowledge import INCIDENT_QUESTIONS, IssueCategory
from legalease.models import Phase, Session, Stage, Turn


async def _drive_to_advice(machine: ConversationStageMachine, session: Session):
    await machine.advance(session, "I was stalked and harassed at work")
    outcome = None
    for i in range(len(INCIDENT_QUESTIONS)):
        outcome = await machine.advance(session, f"detail {i}")
    return outcome


@pytest.mark.asyncio
async def test_intake_classifies_and_asks_for_detail(machine, generator) -> None:
    """First message assigns the category and moves to detail collection."""
    session = Session(session_id="s1")
    outcome = await machine.advance(session, "I was stalked and harassed at work")

    assert session.category is IssueCategory.HARASSMENT
    assert session.stage is Stage.COLLECTING_DETAILS
    assert session.detail_index == 0
    assert session.collected_details == []
    assert outcome.reply == f"generated reply 1\n\n{prompts.DETAIL_FOLLOW_UP}"
    assert outcome.legal_summary is None

    request = generator.requests[0]
    assert "HARASSMENT" in request.preamble
    assert request.message == "I was stalked and harassed at work"
    assert list(request.history) == []
    assert request.params == prompts.INTAKE_PARAMS


@pytest.mark.asyncio
async def test_detail_questions_are_asked_verbatim(machine, generator) -> None:
    session = Session(session_id="s1")
    await machine.advance(session, "I was stalked and harassed at work")

    for expected_index in range(1, len(INCIDENT_QUESTIONS)):
        assert len(session.collected_details) == session.detail_index
        outcome = await machine.advance(session, f"answer {expected_index}")
        assert outcome.reply == INCIDENT_QUESTIONS[expected_index]
        assert session.detail_index == expected_index
        assert session.stage is Stage.COLLECTING_DETAILS

    # no generation while collecting
    assert len(generator.requests) == 1


@pytest.mark.asyncio
async def test_last_detail_gives_advice_and_summary(machine, generator) -> None:
    session = Session(session_id="s1")
    outcome = await _drive_to_advice(machine, session)

    assert session.stage is Stage.ADVISED
    assert session.awaiting_case_history_choice is True
    assert session.advice_given is True
    assert len(session.collected_details) == len(INCIDENT_QUESTIONS)
    assert session.detail_index == len(INCIDENT_QUESTIONS) - 1

    assert outcome.legal_summary is not None
    assert "354, 509" in outcome.legal_summary
    assert outcome.reply.endswith(prompts.CASE_HISTORY_OFFER)

    request = generator.requests[-1]
    assert request.params == prompts.SUMMARY_PARAMS
    assert "HARASSMENT" in request.preamble
    assert "detail 0 detail 1 detail 2 detail 3" in request.preamble


@pytest.mark.asyncio
async def test_case_history_accepted(machine, generator) -> None:
    session = Session(session_id="s1")
    await _drive_to_advice(machine, session)
    calls = len(generator.requests)

    outcome = await machine.advance(session, "Yes please")

    assert session.phase is Phase.ADVISED
    assert session.awaiting_case_history_choice is False
    assert len(generator.requests) == calls + 1
    request = generator.requests[-1]
    assert "HARASSMENT" in request.preamble
    assert "2-3 previous legal cases" in request.preamble
    assert request.params == prompts.CASE_HISTORY_PARAMS
    assert outcome.reply == f"generated reply {calls + 1}"


@pytest.mark.asyncio
async def test_case_history_declined(machine, generator) -> None:
    session = Session(session_id="s1")
    await _drive_to_advice(machine, session)
    calls = len(generator.requests)

    outcome = await machine.advance(session, "not now")

    assert session.phase is Phase.ADVISED
    assert outcome.reply == prompts.CASE_HISTORY_DECLINED
    assert len(generator.requests) == calls


@pytest.mark.asyncio
async def test_affirmative_check_ignores_negation(machine, generator) -> None:
    session = Session(session_id="s1")
    await _drive_to_advice(machine, session)
    calls = len(generator.requests)

    await machine.advance(session, "no, yes I do")

    assert len(generator.requests) == calls + 1
    assert generator.requests[-1].params == prompts.CASE_HISTORY_PARAMS


@pytest.mark.asyncio
async def test_follow_up_after_choice(machine, generator) -> None:
    session = Session(session_id="s1")
    await _drive_to_advice(machine, session)
    await machine.advance(session, "no thanks")

    outcome = await machine.advance(session, "What about a restraining order?")

    request = generator.requests[-1]
    assert request.params == prompts.CONTINUATION_PARAMS
    assert "already shared the incident about HARASSMENT" in request.preamble
    assert session.phase is Phase.ADVISED
    assert outcome.legal_summary is None


@pytest.mark.asyncio
async def test_turns_mirror_replies(machine, generator) -> None:
    session = Session(session_id="s1")
    replies = [(await machine.advance(session, "my phone was stolen")).reply]
    replies.append((await machine.advance(session, "on the train")).reply)

    assert session.turns == [
        Turn("user", "my phone was stolen"),
        Turn("assistant", replies[0]),
        Turn("user", "on the train"),
        Turn("assistant", replies[1]),
    ]
    # history handed to the generator is what the user saw before this message
    await _finish_details(machine, session)
    assert generator.requests[-1].history == session.turns[:-2]


async def _finish_details(machine: ConversationStageMachine, session: Session) -> None:
    while session.stage is Stage.COLLECTING_DETAILS:
        await machine.advance(session, "more detail")


@pytest.mark.asyncio
async def test_history_window(generator) -> None:
    machine = ConversationStageMachine(generator, assistant_name="LegalEase", history_max_turns=2)
    session = Session(session_id="s1")
    await machine.advance(session, "my account was hacked")
    await _finish_details(machine, session)

    assert len(generator.requests[-1].history) == 2
    assert generator.requests[-1].history == session.turns[-4:-2]


@pytest.mark.asyncio
async def test_replay_yields_same_transitions(machine) -> None:
    messages = ["I was cheated in a scam", "a", "b", "c", "d", "yes", "thanks"]
    phases_a, phases_b = [], []
    for phases in (phases_a, phases_b):
        session = Session(session_id="replay")
        for message in messages:
            await machine.advance(session, message)
            phases.append(session.phase)

    assert phases_a == phases_b
    assert phases_a[0] is Phase.COLLECTING_DETAILS
    assert phases_a[4] is Phase.ADVISED_AWAITING_CHOICE
    assert phases_a[-1] is Phase.ADVISED


@pytest.mark.asyncio
async def test_generation_failure_leaves_session_untouched(machine, generator) -> None:
    session = Session(session_id="s1")
    generator.fail = True

    with pytest.raises(GenerationUnavailable):
        await machine.advance(session, "I was harassed")

    assert session.phase is Phase.INTAKE
    assert session.category is None
    assert session.turns == []

    generator.fail = False
    await machine.advance(session, "I was harassed")
    assert session.category is IssueCategory.HARASSMENT


@pytest.mark.asyncio
async def test_generation_failure_on_last_detail_is_retryable(machine, generator) -> None:
    session = Session(session_id="s1")
    await machine.advance(session, "my wallet was snatched")
    for i in range(len(INCIDENT_QUESTIONS) - 1):
        await machine.advance(session, f"detail {i}")
    snapshot = session.clone()

    generator.fail = True
    with pytest.raises(GenerationUnavailable):
        await machine.advance(session, "final detail")
    assert session == snapshot

    generator.fail = False
    outcome = await machine.advance(session, "final detail")
    assert outcome.legal_summary is not None
    assert "378, 379" in outcome.legal_summary
    assert session.collected_details[-1] == "final detail"


def test_category_is_assigned_once() -> None:
    session = Session(session_id="s1")
    session.assign_category(IssueCategory.THEFT)
    with pytest.raises(ValueError):
        session.assign_category(IssueCategory.FRAUD)
