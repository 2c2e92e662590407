"""Per-model token pricing (USD per million tokens)."""

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PricingEntry:
    """USD per million tokens for each token class."""

    input: float
    output: float
    cache_read: float
    cache_write: float


MODEL_PRICING: dict[str, PricingEntry] = {
    "claude-opus-4-6": PricingEntry(input=15, output=75, cache_read=1.5, cache_write=18.75),
    "claude-sonnet-4-6": PricingEntry(input=3, output=15, cache_read=0.3, cache_write=3.75),
    "claude-3-5-sonnet-20241022": PricingEntry(
        input=3, output=15, cache_read=0.3, cache_write=3.75
    ),
    "claude-3-opus-20240229": PricingEntry(input=15, output=75, cache_read=1.5, cache_write=18.75),
    "gpt-4o": PricingEntry(input=2.5, output=10, cache_read=1.25, cache_write=2.5),
    "gpt-5.2": PricingEntry(input=5, output=20, cache_read=2.5, cache_write=5),
}

DEFAULT_PRICING = PricingEntry(input=3, output=15, cache_read=0.3, cache_write=3.75)


def get_pricing(model: str | None) -> PricingEntry:
    """Pricing for ``model``, or the default entry for unknown models."""
    return MODEL_PRICING.get(model or "", DEFAULT_PRICING)


def token_count(usage: dict[str, Any], key: str) -> int:
    """Read a token count from a usage block, treating junk as zero."""
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return int(value)


def cost_for_usage(model: str | None, usage: dict[str, Any]) -> float:
    """USD cost of one usage block (``input``/``output``/``cacheRead``/``cacheWrite``)."""
    p = get_pricing(model)
    return (
        token_count(usage, "input") * p.input
        + token_count(usage, "output") * p.output
        + token_count(usage, "cacheRead") * p.cache_read
        + token_count(usage, "cacheWrite") * p.cache_write
    ) / 1e6


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves upward; the builtin ``round`` sends them to the even neighbour."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale
