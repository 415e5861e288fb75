"""
Guarded OpenAI client wrapper.

Meters chat completions against a token limiter without modifying them.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from ..core.limiter import TokenLimiter


class GuardedOpenAI:
    """AsyncOpenAI wrapper that charges every completion to an identity.
    
    Usage is read from the completion response and recorded through the
    limiter. API and storage failures are propagated unchanged.
    """
    
    def __init__(
        self,
        limiter: TokenLimiter,
        model: str,
        client: Optional[AsyncOpenAI] = None
    ):
        """Initialize guarded OpenAI client.
        
        Args:
            limiter: Limiter that records usage (required)
            model: OpenAI model name (required)
            client: Preconfigured AsyncOpenAI client (defaults to a new one)
            
        Raises:
            ValueError: If limiter is missing or model is missing/empty
        """
        if limiter is None:
            raise ValueError("limiter is required")
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        
        self.limiter = limiter
        self.model = model
        self.client = client or AsyncOpenAI()
    
    async def chat(
        self,
        identity: str,
        messages: List[Dict[str, str]],
        throw_on_limit: bool = False,
        **kwargs: Any
    ) -> Any:
        """Create chat completion with usage recording.
        
        Args:
            identity: Identity charged for the completion
            messages: List of message dictionaries (required)
            throw_on_limit: Reject the call if the identity is over quota
            **kwargs: Additional OpenAI parameters
            
        Returns:
            OpenAI chat completion response, unchanged
            
        Raises:
            ValueError: If messages is empty
            QuotaExceededError: If throw_on_limit is set and quota is exhausted
            OpenAI API errors: Propagated without modification
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")
        
        return await self.limiter.wrap(
            identity,
            lambda: self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **kwargs
            ),
            throw_on_limit=throw_on_limit,
            model=self.model
        )
