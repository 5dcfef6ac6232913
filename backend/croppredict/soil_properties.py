# backend/croppredict/soil_properties.py
"""
Catalogue of the soil/environmental properties the estimator recognizes.

`default` is a presentation hint for form collaborators only; the pipeline
never fills in a missing property.
"""
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel

from croppredict.errors import ValidationError


class SoilProperty(BaseModel):
    id: str
    label: str
    unit: Optional[str] = None
    kind: Literal["number", "text"] = "number"
    min: Optional[float] = None
    max: Optional[float] = None
    default: Any = None
    description: Optional[str] = None


def _ppm(id: str, label: str, default: float, hi: float) -> SoilProperty:
    return SoilProperty(id=id, label=label, unit="ppm", min=0, max=hi, default=default,
                        description=f"{label} content in the soil (ppm)")


SOIL_PROPERTIES: List[SoilProperty] = [
    _ppm("nitrogen", "Nitrogen", 100, 500),
    _ppm("phosphorus", "Phosphorus", 20, 100),
    _ppm("potassium", "Potassium", 150, 500),
    SoilProperty(id="pH", label="Soil pH", min=0, max=14, default=6.5, description="pH level of the soil"),
    SoilProperty(id="water", label="Water Content", unit="%", min=0, max=100, default=25,
                 description="Water content in the soil (%)"),
    SoilProperty(id="sunlight", label="Sunlight Hours", unit="hrs/day", min=0, max=24, default=6,
                 description="Average daily sunlight hours"),
    _ppm("magnesium", "Magnesium", 50, 200),
    _ppm("sodium", "Sodium", 30, 200),
    _ppm("calcium", "Calcium", 1000, 5000),
    _ppm("sulfur", "Sulfur", 20, 100),
    _ppm("iron", "Iron", 5, 50),
    _ppm("manganese", "Manganese", 2, 20),
    _ppm("zinc", "Zinc", 1, 10),
    _ppm("copper", "Copper", 0.5, 5),
    _ppm("boron", "Boron", 0.5, 5),
    _ppm("molybdenum", "Molybdenum", 0.1, 1),
    _ppm("chlorine", "Chlorine", 10, 100),
    _ppm("nickel", "Nickel", 0.1, 1),
    _ppm("aluminum", "Aluminum", 5, 50),
    _ppm("silicon", "Silicon", 20, 100),
    _ppm("cobalt", "Cobalt", 0.05, 0.5),
    _ppm("vanadium", "Vanadium", 0.05, 0.5),
    _ppm("selenium", "Selenium", 0.02, 0.2),
    _ppm("iodine", "Iodine", 0.01, 0.1),
    SoilProperty(id="atmosphericGases", label="Atmospheric Gases", kind="text",
                 default="Standard Earth Atmosphere (Nitrogen, Oxygen, CO2, etc.)",
                 description="Atmospheric gas composition"),
    _ppm("arsenic", "Arsenic", 0.01, 1),
    _ppm("lead", "Lead", 0.1, 5),
    _ppm("cadmium", "Cadmium", 0.01, 0.5),
    _ppm("mercury", "Mercury", 0.001, 0.1),
]

SOIL_PROPERTY_IDS: Tuple[str, ...] = tuple(p.id for p in SOIL_PROPERTIES)
_BY_ID: Dict[str, SoilProperty] = {p.id: p for p in SOIL_PROPERTIES}

# inputs without which nothing grows; zero short-circuits the estimate
REQUIRED_GROWTH_INPUTS: Tuple[str, ...] = ("water", "sunlight")


def get_property(key: str) -> Optional[SoilProperty]:
    return _BY_ID.get(key)


def coerce_property(key: str, value: Any) -> Any:
    """
    Boundary coercion for one recognized property.
    Numeric properties accept numbers or numeric strings and are range-checked.
    Blank values come back as None so the normalizer can drop them.
    """
    prop = _BY_ID[key]
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    if prop.kind == "text":
        return str(value)

    if isinstance(value, bool):
        raise ValidationError(f"{key} - Expected number, received boolean", field=key)
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} - Expected number, received {type(value).__name__}", field=key)
    if num != num:  # NaN
        raise ValidationError(f"{key} - Expected number, received nan", field=key)
    if prop.min is not None and num < prop.min:
        raise ValidationError(f"{key} - Number must be greater than or equal to {prop.min:g}", field=key)
    if prop.max is not None and num > prop.max:
        raise ValidationError(f"{key} - Number must be less than or equal to {prop.max:g}", field=key)
    return int(num) if isinstance(value, int) else num
