"""Error hierarchy for LLM providers.

Providers are arbitrary, so the retry engine cannot rely on structured
error codes. Every error carries a ``retryable`` flag, and rate-limit
detection falls back to inspecting the error text through
:func:`is_rate_limit_error`.
"""

from __future__ import annotations

# Lower-cased substrings that mark an error message as a rate limit.
# Extend this tuple to teach the retry engine about new provider wordings.
RATE_LIMIT_MARKERS: tuple[str, ...] = (
    "429",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "too many requests",
)


class LLMError(Exception):
    """Base error for everything raised on the provider side."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class ProviderError(LLMError):
    """Error returned by a provider API call."""


class AuthenticationError(ProviderError):
    """401/403: invalid or missing credentials. Not retryable."""

    def __init__(
        self, message: str, *, provider: str | None = None, status_code: int | None = 401
    ) -> None:
        super().__init__(message, provider=provider, status_code=status_code, retryable=False)


class RateLimitError(ProviderError):
    """429: rate limited. Retried after a fixed wait.

    ``retry_after`` records the server hint for callers; the retry engine
    does not use it.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, provider=provider, status_code=status_code, retryable=True)
        self.retry_after = retry_after


class AllModelsFailedError(ProviderError):
    """The primary model and every fallback model failed."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message, provider=provider, retryable=True)


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify *error* as a rate limit.

    Typed :class:`RateLimitError` instances and errors with status 429 are
    rate limits; otherwise the error text is matched against
    :data:`RATE_LIMIT_MARKERS`.
    """
    if isinstance(error, RateLimitError):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    text = str(error).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def is_retryable(error: BaseException) -> bool:
    """Errors are retryable unless explicitly flagged otherwise."""
    return bool(getattr(error, "retryable", True))
