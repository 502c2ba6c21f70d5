import sys
from pathlib import Path
from typing import List

import pytest


_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from legalease.conversation import ConversationStageMachine, IntakeChatService  # noqa: E402
from legalease.services.generation import GenerationRequest, GenerationResult  # noqa: E402
from legalease.services.session_store import InMemorySessionStore  # noqa: E402


class FakeGenerator:
    """Records every request and answers with a canned reply (or a failure)."""

    def __init__(self) -> None:
        self.requests: List[GenerationRequest] = []
        self.fail = False

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.fail:
            return GenerationResult.failure("backend down")
        return GenerationResult.success(f"generated reply {len(self.requests)}")


class FakeEmotions:
    def __init__(self, label: str = "fear") -> None:
        self.label = label
        self.messages: List[str] = []

    async def detect(self, message: str) -> str:
        self.messages.append(message)
        return self.label


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def emotions() -> FakeEmotions:
    return FakeEmotions()


@pytest.fixture
def machine(generator: FakeGenerator) -> ConversationStageMachine:
    return ConversationStageMachine(generator, assistant_name="LegalEase", history_max_turns=0)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def chat_service(
    store: InMemorySessionStore,
    machine: ConversationStageMachine,
    emotions: FakeEmotions,
) -> IntakeChatService:
    return IntakeChatService(
        store=store,
        machine=machine,
        emotions=emotions,
        degraded_reply="Service temporarily unavailable.",
    )
