# backend/croppredict/services/scaling.py
from typing import Sequence

from croppredict.config import settings
from croppredict.schemas import AIEstimate, ConfidenceInterval, EstimationResult

GROWTH_INPUT_LABELS = {
    "water": ("water content", "Irrigate the plot; no crop can grow with 0% soil water content."),
    "sunlight": ("sunlight", "Relocate or clear shading; crops need direct sunlight to photosynthesize."),
}


def scale(estimate: AIEstimate, plot_size: float) -> EstimationResult:
    """
    Per-acre model estimate -> whole-plot result.

    Total value is always recomputed here from the scaled yield and the price
    the model reported from the market-price tool.
    """
    estimated_yield = estimate.yield_per_unit_area * plot_size
    ci = estimate.confidence_interval_per_unit_area
    price = estimate.market_price_per_unit
    return EstimationResult(
        estimated_yield=estimated_yield,
        confidence_interval=ConfidenceInterval(lower=ci.lower * plot_size, upper=ci.upper * plot_size),
        market_price_per_kg=price,
        currency=estimate.currency,
        price_unit=estimate.price_unit,
        estimated_total_value=estimated_yield * price,
        explanation=estimate.explanation,
        suggestions=list(estimate.suggestions),
    )


def zero_yield_result(missing: Sequence[str]) -> EstimationResult:
    """Deterministic zero estimate for plots lacking a required growth input."""
    labels = [GROWTH_INPUT_LABELS.get(k, (k, ""))[0] for k in missing]
    explanation = (
        f"The estimated yield is zero because the {' and '.join(labels)} "
        f"{'is' if len(labels) == 1 else 'are'} reported as 0 ({', '.join(f'{k}=0' for k in missing)}). "
        "Crops cannot grow without these inputs, so no model estimate or market valuation was made."
    )
    suggestions = [GROWTH_INPUT_LABELS[k][1] for k in missing if k in GROWTH_INPUT_LABELS]
    suggestions.append("Re-run the estimate once the missing inputs have been corrected.")
    return EstimationResult(
        estimated_yield=0.0,
        confidence_interval=ConfidenceInterval(lower=0.0, upper=0.0),
        market_price_per_kg=0.0,
        currency=settings.PRICE_CURRENCY,
        price_unit=settings.PRICE_UNIT,
        estimated_total_value=0.0,
        explanation=explanation,
        suggestions=suggestions,
    )
