"""HTTP clients for external providers."""
from .gemini import GeminiClient, GeminiClientError

__all__ = ["GeminiClient", "GeminiClientError"]
