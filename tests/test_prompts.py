from langchain_core.messages import HumanMessage, SystemMessage

from croppredict.schemas import EstimationRequest
from croppredict.services.normalize import normalize
from croppredict.services.prompts import (
    NO_CONDITIONS_MARKER,
    NO_PROPERTIES_MARKER,
    build_estimate_prompt,
    build_suggest_prompt,
)

PHOTO = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="


def _prompt(**form):
    base = {"cropType": "Wheat", "plotSize": 2}
    base.update(form)
    n = normalize(EstimationRequest.from_form(base))
    return build_estimate_prompt(n.core, n.properties)


def test_every_supplied_property_is_listed_with_its_value():
    p = _prompt(nitrogen=100, water=25, pH=6.5, atmosphericGases="High CO2")
    assert "  - nitrogen: 100 ppm" in p.text
    assert "  - water: 25 %" in p.text
    assert "  - pH: 6.5" in p.text
    assert "  - atmosphericGases: High CO2" in p.text
    assert NO_PROPERTIES_MARKER not in p.text


def test_null_and_empty_properties_never_reach_the_prompt():
    p = _prompt(nitrogen=None, zinc="", iron=5)
    assert "nitrogen:" not in p.text
    assert "zinc:" not in p.text
    assert "  - iron: 5 ppm" in p.text


def test_empty_property_bag_renders_explicit_marker():
    p = _prompt()
    assert NO_PROPERTIES_MARKER in p.text


def test_photo_section_only_when_photo_present():
    without = _prompt()
    assert "Photo for Analysis" not in without.text
    assert isinstance(without.to_messages()[1].content, str)

    with_photo = _prompt(photo=PHOTO)
    assert "Photo for Analysis" in with_photo.text
    system, human = with_photo.to_messages()
    assert isinstance(system, SystemMessage)
    assert isinstance(human, HumanMessage)
    assert {"type": "image_url", "image_url": {"url": PHOTO}} in human.content


def test_photo_is_elided_from_log_view():
    view = _prompt(photo=PHOTO).for_log()
    assert view["photo"] is True
    assert PHOTO not in str(view)


def test_location_section_only_when_location_present():
    assert "Location:" not in _prompt().text
    p = _prompt(location="Nashik, Maharashtra")
    assert "Location: Nashik, Maharashtra" in p.text
    assert "getWeatherForecast" in p.text


def test_prompt_asks_for_per_acre_yield_and_declares_tools():
    p = _prompt()
    assert "ONE ACRE" in p.text
    assert "getMarketPrice" in p.text
    assert "yieldPerUnitArea" in p.text
    assert "Plot Size: 2 acres" in p.text


def test_prompt_is_deterministic():
    form = {"nitrogen": 80, "water": 30, "location": "Pune"}
    assert _prompt(**form) == _prompt(**form)


def test_suggest_prompt_marker_and_location():
    p = build_suggest_prompt({})
    assert NO_CONDITIONS_MARKER in p.text
    assert "Location:" not in p.text

    p = build_suggest_prompt({"pH": 5.5}, location="Kerala")
    assert "Location: Kerala" in p.text
    assert "  - pH: 5.5" in p.text
    assert "cropName" in p.text
