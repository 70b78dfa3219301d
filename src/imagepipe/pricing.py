"""Per-image pricing for the OpenAI Images API (USD, prices as of 2024)."""

from decimal import Decimal
from typing import Dict, Tuple

from imagepipe.models import ModelTier

PricingKey = Tuple[str, str, str]

ZERO = Decimal("0")

PRICING: Dict[PricingKey, Decimal] = {
    (ModelTier.DALL_E_3.value, "standard", "1024x1024"): Decimal("0.040"),
    (ModelTier.DALL_E_3.value, "standard", "1024x1792"): Decimal("0.080"),
    (ModelTier.DALL_E_3.value, "standard", "1792x1024"): Decimal("0.080"),
    (ModelTier.DALL_E_3.value, "hd", "1024x1024"): Decimal("0.080"),
    (ModelTier.DALL_E_3.value, "hd", "1024x1792"): Decimal("0.120"),
    (ModelTier.DALL_E_3.value, "hd", "1792x1024"): Decimal("0.120"),
    (ModelTier.DALL_E_2.value, "standard", "1024x1024"): Decimal("0.020"),
    (ModelTier.DALL_E_2.value, "standard", "512x512"): Decimal("0.018"),
    (ModelTier.DALL_E_2.value, "standard", "256x256"): Decimal("0.016"),
}


def cost(model: str, quality: str, size: str) -> Decimal:
    """Cost of one image. dall-e-2 has a single price tier, so its quality is
    always read as ``standard``. Combinations missing from the table cost zero."""
    if model == ModelTier.DALL_E_2.value:
        quality = "standard"
    return PRICING.get((model, quality, size), ZERO)


def total_cost(model: str, quality: str, size: str, count: int = 1) -> Decimal:
    if count < 0:
        raise ValueError("count must be non-negative")
    return cost(model, quality, size) * count


def pricing_table() -> Dict[str, Dict[str, Dict[str, float]]]:
    """Nested ``{model: {quality: {size: price}}}`` view for API clients."""
    table: Dict[str, Dict[str, Dict[str, float]]] = {}
    for (model, quality, size), price in PRICING.items():
        table.setdefault(model, {}).setdefault(quality, {})[size] = float(price)
    return table
