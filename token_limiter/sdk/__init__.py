"""
SDK for the token limiter.

Provides LLM client wrappers that meter usage automatically.
"""

from .openai_client import GuardedOpenAI

__all__ = ["GuardedOpenAI"]
