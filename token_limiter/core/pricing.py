"""
Pricing calculations and rate management.

Handles cost computations for various AI models and services.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .token_counter import TokenUsage
from token_limiter.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model in USD."""
    prompt_cost_per_1k: Decimal  # Cost per 1K prompt tokens
    completion_cost_per_1k: Decimal  # Cost per 1K completion tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table keyed by model name fragment."""
    prices: Dict[str, ModelPricing]

    def find_pricing(self, model: Optional[str]) -> Optional[ModelPricing]:
        """Find pricing for a model identifier.

        Keys are matched as substrings of the identifier so versioned names
        like ``claude-3-sonnet-20240229`` resolve. The longest matching key
        wins, so ``gpt-4o-mini`` is not priced as ``gpt-4``.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or None if no key matches
        """
        if not model:
            return None
        matches = [key for key in self.prices if key in model]
        if not matches:
            return None
        return self.prices[max(matches, key=len)]


def _pricing(prompt: str, completion: str) -> ModelPricing:
    return ModelPricing(
        prompt_cost_per_1k=Decimal(prompt),
        completion_cost_per_1k=Decimal(completion)
    )


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    # Anthropic
    "claude-3-opus": _pricing("0.015", "0.075"),
    "claude-3-sonnet": _pricing("0.003", "0.015"),
    "claude-3-haiku": _pricing("0.00025", "0.00125"),
    "claude-3-5-haiku": _pricing("0.0008", "0.004"),
    "claude-sonnet-4": _pricing("0.003", "0.015"),
    "claude-opus-4": _pricing("0.015", "0.075"),
    "claude-haiku-4-5": _pricing("0.001", "0.005"),
    "claude-sonnet-4-5": _pricing("0.003", "0.015"),
    "claude-opus-4-5": _pricing("0.005", "0.025"),
    # OpenAI
    "gpt-5.2": _pricing("0.00175", "0.014"),
    "gpt-5.1": _pricing("0.00125", "0.010"),
    "gpt-5": _pricing("0.00125", "0.010"),
    "gpt-5-mini": _pricing("0.00025", "0.002"),
    "gpt-5-nano": _pricing("0.00005", "0.0004"),
    "gpt-4": _pricing("0.03", "0.06"),
    "gpt-4-turbo": _pricing("0.01", "0.03"),
    "gpt-4o": _pricing("0.005", "0.015"),
    "gpt-4o-mini": _pricing("0.00015", "0.0006"),
    "gpt-3.5-turbo": _pricing("0.0005", "0.0015"),
})


def calculate_cost(model: Optional[str], usage: TokenUsage) -> float:
    """Calculate total cost for model usage.

    Args:
        model: Model identifier, may be None
        usage: Token usage data

    Returns:
        Total cost in USD, 0.0 if the model is unknown
    """
    pricing = PRICING_TABLE.find_pricing(model)
    if pricing is None:
        logger.debug("No pricing for model %r, recording zero cost", model)
        return 0.0

    # (tokens / 1000) * cost_per_1k
    prompt_cost = (Decimal(usage.prompt_tokens) / Decimal("1000")) * pricing.prompt_cost_per_1k
    completion_cost = (Decimal(usage.completion_tokens) / Decimal("1000")) * pricing.completion_cost_per_1k

    return float(prompt_cost + completion_cost)
