from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import openai
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from flavorwheel.core.errors import ClassifierError
from flavorwheel.core.models.usage import UsageLogEntry, UsageOperation
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from uuid import UUID

    from openai import AsyncOpenAI
    from tenacity import RetryCallState

    from flavorwheel.core.services.usage_service import UsageTelemetry

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ClassifierReply:
    text: str
    tokens_used: int
    model: str | None = None


class TextClassifier(ABC):
    """Opaque language-model capability: one prompt in, one text reply out.

    Implementations raise ``ClassifierError`` on failure, with ``retryable``
    set for transient conditions.
    """

    model_name: str | None = None

    @abstractmethod
    async def complete(self, *, system: str, prompt: str) -> ClassifierReply:  # pragma: no cover - interface only
        """Send one prompt and return the model's text."""


class OpenAITextClassifier(TextClassifier):
    """``TextClassifier`` backed by the OpenAI Responses API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        reasoning_effort: str | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._client = client
        self.model_name = model
        self._reasoning_effort = reasoning_effort
        self._timeout = timeout_seconds

    async def complete(self, *, system: str, prompt: str) -> ClassifierReply:
        kwargs: dict = {
            "model": self.model_name,
            "instructions": system,
            "input": prompt,
            "timeout": self._timeout,
        }
        if self._reasoning_effort:
            kwargs["reasoning"] = {"effort": self._reasoning_effort}

        try:
            # Outer bound in case the transport ignores its own timeout
            response = await asyncio.wait_for(
                self._client.responses.create(**kwargs),
                timeout=self._timeout + 1.0,
            )
        except TimeoutError as err:
            raise ClassifierError("classifier call timed out", retryable=True) from err
        except openai.APIError as err:
            raise to_classifier_error(err) from err

        usage = getattr(response, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0) if usage else 0
        text = (getattr(response, "output_text", "") or "").strip()
        if not text:
            raise ClassifierError("classifier returned no text", retryable=False, tokens_used=tokens)
        return ClassifierReply(text=text, tokens_used=tokens, model=getattr(response, "model", None) or self.model_name)


def to_classifier_error(err: openai.APIError) -> ClassifierError:
    """Map OpenAI SDK errors onto retryable / permanent classifier failures."""
    if isinstance(err, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError)):
        return ClassifierError(f"{type(err).__name__}: {err}", retryable=True)
    if isinstance(err, openai.APIStatusError):
        retryable = err.status_code >= 500 or err.status_code == 408
        return ClassifierError(f"HTTP {err.status_code}: {err.message}", retryable=retryable)
    return ClassifierError(f"{type(err).__name__}: {err}", retryable=False)


def _is_retryable(err: BaseException) -> bool:
    return isinstance(err, ClassifierError) and err.retryable


@dataclass(frozen=True)
class RunOutcome(Generic[T]):
    value: T
    tokens_used: int
    attempts: int
    model: str | None


class ClassifierRunner:
    """Calls a ``TextClassifier`` with bounded exponential backoff.

    Only retryable ``ClassifierError``s are retried. Every physical call,
    successful or not, appends one ``UsageLogEntry``. A reply that ``parse``
    rejects counts as a failed call and is not retried.
    """

    def __init__(
        self,
        classifier: TextClassifier,
        telemetry: UsageTelemetry,
        *,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._classifier = classifier
        self._telemetry = telemetry
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._sleep = sleep

    @property
    def model_name(self) -> str | None:
        return self._classifier.model_name

    async def run(
        self,
        *,
        system: str,
        prompt: str,
        parse: Callable[[str], T],
        operation: UsageOperation,
        user_id: UUID | None = None,
    ) -> RunOutcome[T]:
        tokens_spent = 0
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_base, max=self._backoff_max),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    try:
                        reply, value = await self._attempt(
                            system=system, prompt=prompt, parse=parse, operation=operation, user_id=user_id
                        )
                    except ClassifierError as err:
                        tokens_spent += err.tokens_used
                        raise
                    tokens_spent += reply.tokens_used
                    return RunOutcome(value=value, tokens_used=tokens_spent, attempts=attempts, model=reply.model)
        except ClassifierError as err:
            logger.warning(
                "Classifier gave up after %d attempt(s): %s",
                attempts,
                err,
                extra={"operation": operation.value, "retryable": err.retryable},
            )
            raise ClassifierError(str(err), retryable=err.retryable, tokens_used=tokens_spent) from err
        raise ClassifierError("classifier made no attempts", retryable=False)  # pragma: no cover

    async def _attempt(
        self,
        *,
        system: str,
        prompt: str,
        parse: Callable[[str], T],
        operation: UsageOperation,
        user_id: UUID | None,
    ) -> tuple[ClassifierReply, T]:
        started = time.perf_counter()
        try:
            reply = await self._classifier.complete(system=system, prompt=prompt)
        except ClassifierError as err:
            await self._log_call(operation, user_id, started, tokens=err.tokens_used, ok=False, error=str(err))
            raise

        try:
            value = parse(reply.text)
        except (ClassifierError, ValueError) as err:
            await self._log_call(
                operation, user_id, started, tokens=reply.tokens_used, ok=False, error=f"malformed output: {err}",
                model=reply.model,
            )
            raise ClassifierError(
                f"malformed classifier output: {err}", retryable=False, tokens_used=reply.tokens_used
            ) from err

        count = len(value) if isinstance(value, list) else None
        await self._log_call(
            operation, user_id, started, tokens=reply.tokens_used, ok=True, count=count, model=reply.model
        )
        return reply, value

    async def _log_call(
        self,
        operation: UsageOperation,
        user_id: UUID | None,
        started: float,
        *,
        tokens: int,
        ok: bool,
        error: str | None = None,
        count: int | None = None,
        model: str | None = None,
    ) -> None:
        await self._telemetry.record(
            UsageLogEntry(
                operation=operation,
                user_id=user_id,
                model_used=model or self._classifier.model_name,
                tokens_used=max(0, tokens),
                processing_time_ms=max(0, round((time.perf_counter() - started) * 1000)),
                descriptors_extracted=count,
                extraction_successful=ok,
                error_message=error[:500] if error else None,
            )
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        err = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "Transient classifier failure, retrying (attempt %d): %s",
            retry_state.attempt_number,
            err,
        )
