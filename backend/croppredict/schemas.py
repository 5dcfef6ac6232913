import math
from datetime import datetime
from typing import Optional, List, Dict, Any, Mapping, Union
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, model_validator

from croppredict.errors import ValidationError
from croppredict.soil_properties import SOIL_PROPERTY_IDS, coerce_property

PropertyValue = Union[int, float, str]


class CamelModel(BaseModel):
    """Snake-case attributes in Python, camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True)


# ---------- Request models ----------

def parse_properties(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick recognized soil properties out of a flat form payload and coerce them.

    Unrecognized keys are dropped; blank values come back as None.
    """
    return {
        key: coerce_property(key, data[key])
        for key in SOIL_PROPERTY_IDS
        if key in data
    }


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class EstimationRequest(CamelModel):
    crop_type: Optional[str] = Field(None, alias="cropType", description="Crop to estimate (e.g. 'Wheat')")
    plot_size: Optional[float] = Field(None, alias="plotSize", description="Plot size in acres")
    location: Optional[str] = Field(None, description="City or region, enables the weather tool")
    photo: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("photo", "photoDataUri"),
        description="Optional crop/soil photo as 'data:<mimetype>;base64,<data>'",
    )
    properties: Dict[str, Optional[PropertyValue]] = Field(default_factory=dict)

    @classmethod
    def from_form(cls, data: Mapping[str, Any]) -> "EstimationRequest":
        """Form submission boundary: type coercion and range checks happen here, once."""
        plot_size = data.get("plotSize")
        if isinstance(plot_size, str):
            plot_size = plot_size.strip() or None
        if plot_size is not None:
            if isinstance(plot_size, bool):
                raise ValidationError("plotSize - Expected number, received boolean", field="plotSize")
            try:
                plot_size = float(plot_size)
            except (TypeError, ValueError):
                raise ValidationError("plotSize - Expected number", field="plotSize")
            if not math.isfinite(plot_size):
                raise ValidationError("plotSize - Expected a finite number", field="plotSize")

        photo = _clean_str(data.get("photo") or data.get("photoDataUri"))
        if photo is not None and not (photo.startswith("data:") and ";base64," in photo):
            raise ValidationError(
                "photo - Expected a data URI of the form 'data:<mimetype>;base64,<encoded_data>'",
                field="photo",
            )

        return cls(
            crop_type=_clean_str(data.get("cropType")),
            plot_size=plot_size,
            location=_clean_str(data.get("location")),
            photo=photo,
            properties=parse_properties(data),
        )


class CoreFields(CamelModel):
    crop_type: str = Field(alias="cropType")
    plot_size: float = Field(alias="plotSize")
    location: Optional[str] = None
    photo: Optional[str] = None


class NormalizedInput(BaseModel):
    core: CoreFields
    properties: Dict[str, PropertyValue] = Field(default_factory=dict)


# ---------- Tool results ----------

class MarketPrice(CamelModel):
    price: float = Field(..., ge=0, description="The market price of the crop.")
    currency: str = Field(..., description="The currency of the price (e.g., INR).")
    unit: str = Field(..., description="The unit for the price (e.g., kg).")
    crop_type: str = Field(..., alias="cropType", description="The crop the price is for.")
    source: str = Field("static", description="'data.gov.in' for live mandi data, 'static' for the fallback table.")


class WeatherForecast(CamelModel):
    forecast: str = Field(..., description="Summary of the multi-day weather forecast.")


# ---------- Model output ----------

class ConfidenceInterval(BaseModel):
    lower: float = Field(..., description="The lower bound of the confidence interval for yield.")
    upper: float = Field(..., description="The upper bound of the confidence interval for yield.")

    @model_validator(mode="after")
    def _ordered(self):
        if self.lower > self.upper:
            raise ValueError("confidence interval lower bound exceeds upper bound")
        return self


class AIEstimate(CamelModel):
    """Raw structured answer from the model, per acre. Never exposed externally."""
    yield_per_unit_area: float = Field(
        ..., ge=0, alias="yieldPerUnitArea",
        description="Estimated crop yield in kilograms for ONE acre of this plot.",
    )
    confidence_interval_per_unit_area: ConfidenceInterval = Field(
        ..., alias="confidenceIntervalPerUnitArea",
        description="Confidence interval for the per-acre yield, in kilograms.",
    )
    market_price_per_unit: float = Field(
        ..., ge=0, alias="marketPricePerUnit",
        description="THIS MUST BE THE EXACT NUMERIC 'price' VALUE AS RETURNED BY THE getMarketPrice TOOL.",
    )
    currency: str = Field(
        ..., description="THIS MUST BE THE EXACT 'currency' STRING AS RETURNED BY THE getMarketPrice TOOL.",
    )
    price_unit: str = Field(
        ..., alias="priceUnit",
        description="THIS MUST BE THE EXACT 'unit' STRING AS RETURNED BY THE getMarketPrice TOOL.",
    )
    explanation: str = Field(
        ..., description="Factors influencing the yield and value estimation, citing the tool's price, currency and unit.",
    )
    suggestions: List[str] = Field(
        ..., description="2-5 actionable suggestions to improve soil quality and crop yield.",
    )


class SuggestedCrop(CamelModel):
    crop_name: str = Field(..., alias="cropName", description="The common name of the suggested crop.")
    reasoning: str = Field(..., description="Why this crop suits the given soil and environmental conditions.")


class SuggestCropOutput(BaseModel):
    suggestions: List[SuggestedCrop] = Field(..., description="A list of 3-5 suitable crop suggestions.")


# ---------- Results ----------

class EstimationResult(CamelModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    estimated_yield: float = Field(alias="estimatedYield")
    confidence_interval: ConfidenceInterval = Field(alias="confidenceInterval")
    market_price_per_kg: float = Field(alias="marketPricePerKg")
    currency: str
    price_unit: str = Field(alias="priceUnit")
    estimated_total_value: float = Field(alias="estimatedTotalValue")
    explanation: str
    suggestions: List[str] = Field(default_factory=list)


class EstimationHistoryRecord(EstimationResult):
    id: str
    created_at: datetime = Field(alias="createdAt")
    crop_type: str = Field(alias="cropType")
    plot_size: float = Field(alias="plotSize")


class PersistOutcome(BaseModel):
    success: bool
    error: Optional[str] = None


# ---------- Response envelopes ----------

class EstimateResponse(BaseModel):
    success: bool
    data: Optional[EstimationResult] = None
    error: Optional[str] = None


class HistoryResponse(BaseModel):
    success: bool
    data: Optional[List[EstimationHistoryRecord]] = None
    error: Optional[str] = None


class SuggestCropResponse(BaseModel):
    success: bool
    data: Optional[SuggestCropOutput] = None
    error: Optional[str] = None
