import json
from typing import Any, List, Optional

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from croppredict.config import settings
from croppredict.services.history import HistoryStore


class ScriptedChatModel(BaseChatModel):
    """Chat model that replays a fixed list of replies and records what it was sent."""

    replies: List[AIMessage]
    calls: List[List[BaseMessage]] = []
    bound_tools: List[str] = []

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        self.calls.append(list(messages))
        msg = self.replies[len(self.calls) - 1]
        return ChatResult(generations=[ChatGeneration(message=msg)])

    def bind_tools(self, tools, **kwargs: Any):
        self.bound_tools = [t.name for t in tools]
        return self


class ExplodingChatModel(BaseChatModel):
    @property
    def _llm_type(self) -> str:
        return "exploding"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        raise ConnectionError("upstream unavailable")

    def bind_tools(self, tools, **kwargs: Any):
        return self


def final(text: str, finish: Optional[str] = "stop") -> AIMessage:
    return AIMessage(content=text, response_metadata={"finish_reason": finish})


def tool_call(name: str, args: dict, call_id: str = "call_1") -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args, "id": call_id}],
        response_metadata={"finish_reason": "tool_calls"},
    )


def estimate_json(yield_per_acre=500, lower=450, upper=550, price=20, currency="INR", unit="kg",
                  suggestions=None) -> str:
    return json.dumps({
        "yieldPerUnitArea": yield_per_acre,
        "confidenceIntervalPerUnitArea": {"lower": lower, "upper": upper},
        "marketPricePerUnit": price,
        "currency": currency,
        "priceUnit": unit,
        "explanation": f"Market price from getMarketPrice: {price} {currency}/{unit}.",
        "suggestions": suggestions or ["Add compost to raise organic matter.", "Split nitrogen applications."],
    })


def wheat_script(**kw) -> List[AIMessage]:
    """Model asks for the market price once, then answers."""
    return [tool_call("getMarketPrice", {"cropType": "Wheat"}), final(estimate_json(**kw))]


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    monkeypatch.setattr(settings, "WEATHER_LIVE", False)
    monkeypatch.setattr(settings, "DATA_GOV_IN_API_KEY", "")
    monkeypatch.setattr(settings, "PRICE_CURRENCY", "INR")
    monkeypatch.setattr(settings, "PRICE_UNIT", "kg")
    monkeypatch.setattr(settings, "DEFAULT_PRICE_PER_KG", 16.0)
    monkeypatch.setattr(settings, "LLM_MAX_TOOL_ROUNDS", 4)


@pytest.fixture
def store():
    s = HistoryStore("sqlite://")
    yield s
    s.engine.dispose()


@pytest.fixture
def wheat_form():
    return {"cropType": "Wheat", "plotSize": 2, "water": 25, "sunlight": 6}
