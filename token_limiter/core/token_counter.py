"""
Token counting and usage tracking.

Extracts token counts from LLM API responses.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

USAGE_FIELD_PAIRS = (
    ("input_tokens", "output_tokens"),        # Anthropic
    ("prompt_tokens", "completion_tokens"),   # OpenAI
)


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.
    
    Contains exact token counts without estimation or model-specific logic.
    """
    prompt_tokens: float
    completion_tokens: float
    
    @property
    def total_tokens(self) -> float:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _read_pair(usage: Any, pair: Tuple[str, str]) -> Optional[TokenUsage]:
    prompt = _field(usage, pair[0])
    completion = _field(usage, pair[1])
    if _is_number(prompt) and _is_number(completion):
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion)
    return None


def extract_token_usage(response: Any) -> TokenUsage:
    """Extract token counts from an LLM API response.

    Works with both dictionaries and SDK response objects exposing a
    ``usage`` attribute. Recognised shapes are Anthropic
    (``input_tokens``/``output_tokens``) and OpenAI
    (``prompt_tokens``/``completion_tokens``).

    Args:
        response: Response returned by an LLM client

    Returns:
        TokenUsage with the extracted counts, zero if nothing is recognised
    """
    if response is None:
        return TokenUsage(prompt_tokens=0, completion_tokens=0)

    usage = _field(response, "usage")
    if usage is not None:
        for pair in USAGE_FIELD_PAIRS:
            token_usage = _read_pair(usage, pair)
            if token_usage is not None:
                return token_usage

    return TokenUsage(prompt_tokens=0, completion_tokens=0)
