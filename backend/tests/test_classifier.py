from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from flavorwheel.core.errors import ClassifierError
from flavorwheel.core.models.usage import UsageOperation
from flavorwheel.core.services.classifier import ClassifierReply, OpenAITextClassifier, to_classifier_error

from .fakes import ScriptedClassifier, permanent, transient

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def status_error(cls, code: int):
    return cls(f"status {code}", response=httpx.Response(code, request=REQUEST), body=None)


async def run(runner, parse=json.loads):
    return await runner.run(system="sys", prompt="prompt", parse=parse, operation=UsageOperation.EXTRACTION)


async def test_transient_failures_are_retried_with_backoff(make_services, usage_repo, sleeps):
    classifier = ScriptedClassifier(transient(), transient(), "[1, 2]")
    runner = make_services(classifier).runner

    outcome = await run(runner)

    assert outcome.value == [1, 2]
    assert outcome.attempts == 3
    assert sleeps == [1.0, 2.0]
    assert [e.extraction_successful for e in usage_repo.entries] == [False, False, True]
    assert usage_repo.entries[-1].descriptors_extracted == 2


async def test_backoff_is_capped(make_services, settings, sleeps):
    settings.classifier_max_attempts = 5
    classifier = ScriptedClassifier(transient())
    runner = make_services(classifier).runner

    with pytest.raises(ClassifierError) as exc_info:
        await run(runner)

    assert exc_info.value.retryable is True
    assert len(classifier.calls) == 5
    assert sleeps == [1.0, 2.0, 4.0, 4.0]


async def test_permanent_failure_is_attempted_once(make_services, usage_repo, sleeps):
    classifier = ScriptedClassifier(permanent(), "[]")
    runner = make_services(classifier).runner

    with pytest.raises(ClassifierError) as exc_info:
        await run(runner)

    assert exc_info.value.retryable is False
    assert len(classifier.calls) == 1
    assert sleeps == []
    assert len(usage_repo.entries) == 1
    assert "invalid api key" in usage_repo.entries[0].error_message


async def test_unparseable_reply_is_not_retried_and_keeps_tokens(make_services, usage_repo):
    classifier = ScriptedClassifier("not json at all", tokens=77)
    runner = make_services(classifier).runner

    with pytest.raises(ClassifierError) as exc_info:
        await run(runner)

    assert exc_info.value.retryable is False
    assert exc_info.value.tokens_used == 77
    assert len(classifier.calls) == 1
    entry = usage_repo.entries[0]
    assert entry.extraction_successful is False
    assert entry.tokens_used == 77
    assert entry.error_message.startswith("malformed output")


async def test_tokens_accumulate_across_attempts(make_services):
    classifier = ScriptedClassifier(
        ClassifierError("timed out", retryable=True, tokens_used=5),
        ClassifierReply(text="[]", tokens_used=100, model="fake-model"),
    )
    outcome = await run(make_services(classifier).runner)

    assert outcome.tokens_used == 105
    assert outcome.model == "fake-model"


@pytest.mark.parametrize(
    ("err", "retryable"),
    [
        (openai.APITimeoutError(request=REQUEST), True),
        (openai.APIConnectionError(request=REQUEST), True),
        (status_error(openai.RateLimitError, 429), True),
        (status_error(openai.InternalServerError, 503), True),
        (status_error(openai.APIStatusError, 408), True),
        (status_error(openai.AuthenticationError, 401), False),
        (status_error(openai.BadRequestError, 400), False),
    ],
)
def test_openai_errors_map_to_retryability(err, retryable):
    assert to_classifier_error(err).retryable is retryable


def make_openai_client(**create_kwargs):
    client = MagicMock()
    client.responses.create = AsyncMock(**create_kwargs)
    return client


async def test_openai_classifier_returns_text_and_tokens():
    response = SimpleNamespace(output_text=' [{"text": "oak"}] ', usage=SimpleNamespace(total_tokens=42), model="m-1")
    client = make_openai_client(return_value=response)
    classifier = OpenAITextClassifier(client, model="gpt-5-nano", reasoning_effort="low", timeout_seconds=5)

    reply = await classifier.complete(system="sys", prompt="hello")

    assert reply == ClassifierReply(text='[{"text": "oak"}]', tokens_used=42, model="m-1")
    kwargs = client.responses.create.await_args.kwargs
    assert kwargs["model"] == "gpt-5-nano"
    assert kwargs["instructions"] == "sys"
    assert kwargs["input"] == "hello"
    assert kwargs["reasoning"] == {"effort": "low"}
    assert kwargs["timeout"] == 5


async def test_openai_classifier_maps_sdk_errors():
    client = make_openai_client(side_effect=status_error(openai.RateLimitError, 429))
    classifier = OpenAITextClassifier(client, model="gpt-5-nano")

    with pytest.raises(ClassifierError) as exc_info:
        await classifier.complete(system="sys", prompt="hello")

    assert exc_info.value.retryable is True


async def test_openai_classifier_rejects_empty_output():
    response = SimpleNamespace(output_text="", usage=SimpleNamespace(total_tokens=9), model="m-1")
    classifier = OpenAITextClassifier(make_openai_client(return_value=response), model="gpt-5-nano")

    with pytest.raises(ClassifierError) as exc_info:
        await classifier.complete(system="sys", prompt="hello")

    assert exc_info.value.retryable is False
    assert exc_info.value.tokens_used == 9
