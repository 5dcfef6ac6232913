# backend/croppredict/services/normalize.py
import math
from typing import Any, Dict, List, Mapping

from croppredict.errors import ValidationError
from croppredict.schemas import EstimationRequest, CoreFields, NormalizedInput
from croppredict.soil_properties import REQUIRED_GROWTH_INPUTS, get_property


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def drop_empty(properties: Mapping[str, Any]) -> Dict[str, Any]:
    """Remove properties whose value is None or an empty string. Nothing is defaulted."""
    return {k: v for k, v in properties.items() if not _is_blank(v)}


def clean_properties(properties: Mapping[str, Any]) -> Dict[str, Any]:
    """Recognized, non-empty properties only, in the order given."""
    return drop_empty({k: v for k, v in properties.items() if get_property(k) is not None})


def normalize(raw: EstimationRequest) -> NormalizedInput:
    """
    Split core fields from the soil property bag.

    Raises ValidationError when cropType is empty or plotSize is missing/non-positive.
    Values are taken as given; coercion already happened at the boundary.
    """
    crop_type = (raw.crop_type or "").strip()
    if not crop_type:
        raise ValidationError("Crop type is required.", field="cropType")
    if raw.plot_size is None:
        raise ValidationError("Plot size is required.", field="plotSize")
    if not math.isfinite(raw.plot_size):
        raise ValidationError("Plot size must be a finite number of acres.", field="plotSize")
    if not raw.plot_size > 0:
        raise ValidationError("Plot size must be greater than 0 acres.", field="plotSize")

    core = CoreFields(
        crop_type=crop_type,
        plot_size=raw.plot_size,
        location=None if _is_blank(raw.location) else raw.location.strip(),
        photo=None if _is_blank(raw.photo) else raw.photo,
    )
    return NormalizedInput(core=core, properties=clean_properties(raw.properties))


def zero_growth_inputs(properties: Mapping[str, Any]) -> List[str]:
    """Required growth inputs that were supplied and are numerically zero."""
    missing = []
    for key in REQUIRED_GROWTH_INPUTS:
        v = properties.get(key)
        if isinstance(v, (int, float)) and not isinstance(v, bool) and v == 0:
            missing.append(key)
    return missing
