"""Relay LLM provider layer.

Conversation data model, the provider contract, and the retry engine
that guards every provider call.
"""

from __future__ import annotations

from relay_llm.errors import (
    RATE_LIMIT_MARKERS,
    AllModelsFailedError,
    AuthenticationError,
    LLMError,
    ProviderError,
    RateLimitError,
    is_rate_limit_error,
    is_retryable,
)
from relay_llm.fallback import FallbackProvider
from relay_llm.middleware import (
    LoggingMiddleware,
    Middleware,
    MiddlewareProvider,
    TokenCountingMiddleware,
    apply_middleware,
)
from relay_llm.provider import Provider
from relay_llm.retry import RetryPolicy, retry_with_policy
from relay_llm.types import (
    CapabilityDescriptor,
    ConversationRequest,
    ConversationResponse,
    Message,
    Role,
    ToolInvocationRequest,
    Usage,
    conversation_is_consistent,
)

__all__ = [
    # Provider
    "Provider",
    "FallbackProvider",
    # Types
    "Role",
    "Message",
    "ToolInvocationRequest",
    "CapabilityDescriptor",
    "ConversationRequest",
    "ConversationResponse",
    "Usage",
    "conversation_is_consistent",
    # Errors
    "LLMError",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "AllModelsFailedError",
    "RATE_LIMIT_MARKERS",
    "is_rate_limit_error",
    "is_retryable",
    # Retry
    "RetryPolicy",
    "retry_with_policy",
    # Middleware
    "Middleware",
    "MiddlewareProvider",
    "LoggingMiddleware",
    "TokenCountingMiddleware",
    "apply_middleware",
]
