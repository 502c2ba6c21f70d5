import logging
import re
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from ..settings import get_settings

logger = logging.getLogger(__name__)

EMOTION_LABELS = ("fear", "anger", "sadness", "joy", "calm")
NEUTRAL_EMOTION = "calm"


def parse_emotion_label(content: str) -> str | None:
    """Return the first known label found in the model's answer, if any."""
    for word in re.findall(r"[a-z]+", content.lower()):
        if word in EMOTION_LABELS:
            return word
    return None


class EmotionGateway:
    """Best-guess affect label for a message; never raises."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None) -> None:
        settings = get_settings()
        self._client = client
        self._model = model or settings.emotion_model
        self._system_prompt = settings.emotion_system_prompt

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            settings = get_settings()
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.emotion_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def detect(self, message: str) -> str:
        try:
            response: Any = await self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": message},
                ],
                max_tokens=5,
                temperature=0.0,
            )
            content = response.choices[0].message.content or ""
        except (OpenAIError, AttributeError, IndexError) as e:
            logger.warning("Emotion detection error: %s", e)
            return NEUTRAL_EMOTION

        label = parse_emotion_label(content)
        if label is None:
            logger.debug("Unrecognised emotion label %r", content)
            return NEUTRAL_EMOTION
        return label
