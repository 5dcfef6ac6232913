import asyncio
import logging

import pytest

from conftest import ExplodingChatModel, ScriptedChatModel, estimate_json, final, tool_call
from croppredict.errors import (
    GenerationFormatError,
    GenerationLengthError,
    GenerationSafetyError,
    GenerationUnknownError,
)
from croppredict.schemas import AIEstimate, CoreFields
from croppredict.services.generation import (
    GenerationStatus,
    ModelReply,
    classify,
    extract_json_text,
    invoke,
)
from croppredict.services.prompts import build_estimate_prompt
from croppredict.tools import ESTIMATION_TOOLS

PAYLOAD = build_estimate_prompt(CoreFields(crop_type="Wheat", plot_size=2), {"water": 25})


@pytest.mark.parametrize("text,finish,expected", [
    (estimate_json(), "stop", GenerationStatus.SUCCESS),
    ("```json\n" + estimate_json() + "\n```", "stop", GenerationStatus.SUCCESS),
    ("", "content_filter", GenerationStatus.BLOCKED),
    ("I can't help with that", "SAFETY", GenerationStatus.BLOCKED),
    ('{"yieldPerUnitArea": 50', "length", GenerationStatus.TRUNCATED),
    ("partial", "MAX_TOKENS", GenerationStatus.TRUNCATED),
    ("Here is your estimate: about 500kg", "stop", GenerationStatus.MALFORMED),
    ('{"yieldPerUnitArea": 500, "currency": "INR"', "stop", GenerationStatus.MALFORMED),
    ('{"yieldPerUnitArea": "lots"}', "stop", GenerationStatus.SCHEMA_INVALID),
    ("", "OTHER", GenerationStatus.UNKNOWN_FAILURE),
    ("", "tool_calls", GenerationStatus.UNKNOWN_FAILURE),
    ("", None, GenerationStatus.UNKNOWN_FAILURE),
    ("Checking the price first.", "tool_calls", GenerationStatus.UNKNOWN_FAILURE),
    ("About 500 kg per acre.", None, GenerationStatus.MALFORMED),
    ("About 500 kg per acre.", "eos", GenerationStatus.MALFORMED),
    ('{"yieldPerUnitArea": "lots"}', None, GenerationStatus.SCHEMA_INVALID),
])
def test_classify_terminal_states(text, finish, expected):
    status, parsed = classify(ModelReply(text=text, finish_reason=finish), AIEstimate)
    assert status == expected
    assert (parsed is not None) == (expected == GenerationStatus.SUCCESS)


def test_inverted_confidence_interval_is_schema_invalid():
    reply = ModelReply(text=estimate_json(lower=600, upper=400), finish_reason="stop")
    assert classify(reply, AIEstimate)[0] == GenerationStatus.SCHEMA_INVALID


def test_extract_json_text_strips_fences():
    assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json_text('  {"a": 1}  ') == '{"a": 1}'


def test_invoke_runs_tool_loop_and_returns_parsed_estimate():
    llm = ScriptedChatModel(replies=[
        tool_call("getMarketPrice", {"cropType": "Wheat"}),
        final(estimate_json()),
    ])
    out = asyncio.run(invoke(PAYLOAD, AIEstimate, llm, tools=ESTIMATION_TOOLS))

    assert out.yield_per_unit_area == 500
    assert out.market_price_per_unit == 20
    assert llm.bound_tools == ["getMarketPrice", "getWeatherForecast"]
    # second call carries the tool result back to the model
    tool_msg = llm.calls[1][-1]
    assert '"price": 20.0' in tool_msg.content
    assert '"cropType": "Wheat"' in tool_msg.content


def test_unknown_tool_is_reported_back_not_raised():
    llm = ScriptedChatModel(replies=[tool_call("getSoilMap", {"x": 1}), final(estimate_json())])
    asyncio.run(invoke(PAYLOAD, AIEstimate, llm, tools=ESTIMATION_TOOLS))
    assert "unknown tool" in llm.calls[1][-1].content


def test_length_failure_is_sanitized_and_logged(caplog):
    raw = '{"yieldPerUnitArea": 500, "explanation": "The soil is very'
    llm = ScriptedChatModel(replies=[final(raw, finish="length")])
    with caplog.at_level(logging.ERROR, logger="croppredict.generation"):
        with pytest.raises(GenerationLengthError) as exc:
            asyncio.run(invoke(PAYLOAD, AIEstimate, llm, tools=ESTIMATION_TOOLS))
    assert raw not in exc.value.user_message
    assert "too long" in exc.value.user_message
    assert raw in caplog.text
    assert "Finish reason: length" in caplog.text


@pytest.mark.parametrize("reply,error", [
    (final("", finish="content_filter"), GenerationSafetyError),
    (final("Sorry, here are some thoughts.", finish="stop"), GenerationFormatError),
    (final('{"foo": 1}', finish="stop"), GenerationFormatError),
    (final("", finish="OTHER"), GenerationUnknownError),
    (final("About 500 kg per acre.", finish=None), GenerationFormatError),
])
def test_failure_kinds_map_to_error_classes(reply, error):
    llm = ScriptedChatModel(replies=[reply])
    with pytest.raises(error):
        asyncio.run(invoke(PAYLOAD, AIEstimate, llm, tools=ESTIMATION_TOOLS))


def test_format_errors_have_distinct_messages():
    msgs = []
    for text in ("not json at all", '{"foo": 1}'):
        llm = ScriptedChatModel(replies=[final(text)])
        with pytest.raises(GenerationFormatError) as exc:
            asyncio.run(invoke(PAYLOAD, AIEstimate, llm))
        msgs.append(exc.value.user_message)
    assert msgs[0] != msgs[1]


def test_tool_round_budget_exhaustion_is_unknown_failure(monkeypatch):
    from croppredict.config import settings
    monkeypatch.setattr(settings, "LLM_MAX_TOOL_ROUNDS", 1)
    llm = ScriptedChatModel(replies=[
        tool_call("getMarketPrice", {"cropType": "Wheat"}, "c1"),
        tool_call("getMarketPrice", {"cropType": "Wheat"}, "c2"),
    ])
    with pytest.raises(GenerationUnknownError):
        asyncio.run(invoke(PAYLOAD, AIEstimate, llm, tools=ESTIMATION_TOOLS))
    assert len(llm.calls) == 2


def test_transport_failure_is_unknown_failure():
    with pytest.raises(GenerationUnknownError) as exc:
        asyncio.run(invoke(PAYLOAD, AIEstimate, ExplodingChatModel()))
    assert "upstream unavailable" not in exc.value.user_message
