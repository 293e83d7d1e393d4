from __future__ import annotations

from typing import TYPE_CHECKING

from openai import AsyncOpenAI

from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from flavorwheel.config import Settings

logger = get_logger(__name__)


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Create the OpenAI client used by the text classifier.

    SDK retries are disabled; the classifier runner retries on its own so that
    each physical call is logged.
    """
    if not settings.openai_api_key:
        raise RuntimeError("openai_api_key is required for the classifier client")
    logger.debug("Initializing OpenAI client for model %s", settings.classifier_model)
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        max_retries=0,
        timeout=settings.classifier_timeout_seconds,
    )
