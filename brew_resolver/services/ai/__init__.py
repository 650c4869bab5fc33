"""Web-grounded AI clients."""

from brew_resolver.services.ai.client import (
    AIClient,
    AIProvider,
    GroundedResponse,
    get_ai_client,
    get_ai_client_from_env,
)

__all__ = [
    "AIClient",
    "AIProvider",
    "GroundedResponse",
    "get_ai_client",
    "get_ai_client_from_env",
]
