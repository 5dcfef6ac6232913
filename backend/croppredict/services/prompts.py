# backend/croppredict/services/prompts.py
"""
Prompt builders for the estimation and crop-suggestion flows.

Both builders are deterministic: the same normalized input always renders the
same text. Only properties that were actually supplied are listed; an empty bag
renders an explicit marker so the model does not invent values.
"""
import json
from typing import Any, Dict, List, Mapping, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from croppredict.config import settings
from croppredict.schemas import AIEstimate, CoreFields, SuggestCropOutput
from croppredict.soil_properties import get_property

NO_PROPERTIES_MARKER = "No additional soil properties provided."
NO_CONDITIONS_MARKER = "No soil or environmental properties were provided."


class PromptPayload(BaseModel):
    name: str
    system: str
    text: str
    photo: Optional[str] = None

    def to_messages(self) -> List[BaseMessage]:
        if self.photo:
            content: Any = [
                {"type": "text", "text": self.text},
                {"type": "image_url", "image_url": {"url": self.photo}},
            ]
        else:
            content = self.text
        return [SystemMessage(content=self.system), HumanMessage(content=content)]

    def for_log(self) -> Dict[str, Any]:
        """Loggable view; the photo payload is elided."""
        return {"name": self.name, "text": self.text, "photo": bool(self.photo)}


def _fmt_value(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def render_properties(properties: Mapping[str, Any], empty_marker: str) -> str:
    if not properties:
        return f"  {empty_marker}"
    lines = []
    for key, value in properties.items():
        prop = get_property(key)
        unit = f" {prop.unit}" if prop and prop.unit else ""
        lines.append(f"  - {key}: {_fmt_value(value)}{unit}")
    return "\n".join(lines)


def _schema_block(model: type[BaseModel]) -> str:
    return json.dumps(model.model_json_schema(by_alias=True), indent=2, sort_keys=True)


ESTIMATE_SYSTEM = "You are an expert agricultural consultant and market analyst."


def build_estimate_prompt(core: CoreFields, properties: Mapping[str, Any]) -> PromptPayload:
    currency = settings.PRICE_CURRENCY
    sections: List[str] = [
        "Based on the provided crop type, plot size, soil properties and the optional photo and location:",
        "1. Estimate the crop yield in kilograms for ONE ACRE of this land (yieldPerUnitArea), "
        "not for the whole plot. The plot size is given for context only; scaling is done afterwards.",
        "2. Provide a per-acre confidence interval for that yield (confidenceIntervalPerUnitArea).",
        f"3. Use the 'getMarketPrice' tool to find the current market price for '{core.crop_type}'. "
        "The tool returns 'price' (number), 'currency' (string) and 'unit' (string). "
        "'marketPricePerUnit' MUST be the exact numeric 'price' from the tool, "
        "'currency' MUST be the exact 'currency' string from the tool "
        f"(the tool is configured for {currency}), "
        "and 'priceUnit' MUST be the exact 'unit' string from the tool.",
        "4. Provide an 'explanation' of the factors influencing the estimate. It MUST state the market "
        "price, currency and unit exactly as obtained from the getMarketPrice tool.",
        "5. As an expert agronomist, provide 2-5 actionable 'suggestions' for improving soil quality and "
        "yield based on the provided data (for example, if pH is low, suggest adding lime).",
    ]

    body = [
        "\n".join(sections),
        "",
        "Tools available:",
        "  - getMarketPrice(cropType): current market price for a crop.",
        "  - getWeatherForecast(location): 7-day weather forecast for a city or region.",
        "",
        f"Crop Type: {core.crop_type}",
        f"Plot Size: {_fmt_value(core.plot_size)} acres",
    ]

    if core.location:
        body += [
            "",
            f"Location: {core.location}",
            "Use the 'getWeatherForecast' tool for this location and factor the expected weather "
            "into the yield estimate and the explanation.",
        ]

    if core.photo:
        body += [
            "",
            "Photo for Analysis: attached. Analyze it for visual cues about soil quality, plant health, "
            "discoloration and pests, and include this visual analysis in the 'explanation'.",
        ]

    body += [
        "",
        "Soil Properties (only provided values are listed):",
        render_properties(properties, NO_PROPERTIES_MARKER),
        "",
        "Respond with ONLY a valid JSON object matching this JSON schema, "
        "with no additional text or markdown outside of the JSON structure:",
        _schema_block(AIEstimate),
    ]

    return PromptPayload(
        name="estimateCropYield",
        system=ESTIMATE_SYSTEM,
        text="\n".join(body),
        photo=core.photo,
    )


def build_suggest_prompt(properties: Mapping[str, Any], location: Optional[str] = None) -> PromptPayload:
    body = [
        "Your task is to suggest a list of 3 to 5 suitable crops based on the provided soil and "
        "environmental data.",
        "Analyze all the provided data points. For each suggested crop, provide a clear and concise "
        "reasoning explaining why it is a good fit for the given conditions.",
    ]
    if location:
        body += ["", f"Location: {location}"]
    body += [
        "",
        "Soil and Environmental Properties (only provided values are listed):",
        render_properties(properties, NO_CONDITIONS_MARKER),
        "",
        "Respond with ONLY a valid JSON object matching this JSON schema, "
        "with no additional text or markdown outside of the JSON structure:",
        _schema_block(SuggestCropOutput),
    ]
    return PromptPayload(
        name="suggestSuitableCrop",
        system="You are an expert agricultural consultant.",
        text="\n".join(body),
    )
