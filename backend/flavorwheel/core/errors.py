from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors raised by the descriptor pipeline."""


class ClassifierError(PipelineError):
    """The language-model call failed.

    ``retryable`` marks transient failures (timeouts, connection errors,
    rate limits, 5xx). ``tokens_used`` carries tokens already spent on the
    failed request, if any.
    """

    def __init__(self, message: str, *, retryable: bool, tokens_used: int = 0) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.tokens_used = tokens_used


class PersistenceError(PipelineError):
    """A storage read or write failed. Never swallowed by services."""
