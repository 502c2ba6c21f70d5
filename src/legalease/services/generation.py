import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..models import Turn
from ..settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int
    temperature: float = 0.6


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the text-generation service sees for one reply."""

    preamble: str
    history: Sequence[Turn]
    message: str
    params: GenerationParams


@dataclass(frozen=True)
class GenerationResult:
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        return cls(text=text)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(error=error)


def build_messages(request: GenerationRequest) -> List[Dict[str, str]]:
    """Convert a request to chat-completions messages: preamble, history, latest message."""
    messages: List[Dict[str, str]] = [{"role": "system", "content": request.preamble.strip()}]
    for turn in request.history:
        messages.append({"role": turn.role, "content": turn.text})
    messages.append({"role": "user", "content": request.message})
    return messages


class GenerationGateway:
    """Text generation through an OpenAI-compatible chat completions API.

    Timeouts and retries with exponential backoff are delegated to the
    ``openai`` client; once those are exhausted the failure is returned as a
    ``GenerationResult`` rather than raised.
    """

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None) -> None:
        self._client = client
        self._model = model or get_settings().model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            settings = get_settings()
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.generation_timeout_seconds,
                max_retries=settings.generation_max_retries,
            )
        return self._client

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages = build_messages(request)
        logger.debug(
            "Generation request: %d messages, max_tokens=%d",
            len(messages),
            request.params.max_tokens,
        )
        try:
            response: Any = await self._get_client().chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=request.params.max_tokens,
                temperature=request.params.temperature,
            )
        except OpenAIError as e:
            logger.error("Generation request failed: %s", e)
            return GenerationResult.failure(str(e))

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            logger.error("Generation response parse failed: %s", e)
            return GenerationResult.failure(f"malformed response: {e}")

        text = content.strip()
        if not text:
            logger.error("Generation returned an empty completion")
            return GenerationResult.failure("empty completion")
        return GenerationResult.success(text)
