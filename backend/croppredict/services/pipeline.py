# backend/croppredict/services/pipeline.py
import time
import logging
from typing import Any, Mapping, Optional

from langchain_core.language_models.chat_models import BaseChatModel

from croppredict.schemas import AIEstimate, EstimationRequest, EstimationResult, SuggestCropOutput
from croppredict.services.generation import invoke
from croppredict.services.history import HistoryStore, schedule_persist
from croppredict.services.normalize import clean_properties, normalize, zero_growth_inputs
from croppredict.services.prompts import build_estimate_prompt, build_suggest_prompt
from croppredict.services.scaling import scale, zero_yield_result
from croppredict.tools import ESTIMATION_TOOLS

log = logging.getLogger("croppredict.pipeline")

def t(): return time.perf_counter()


async def estimate_crop_yield(
    request: EstimationRequest,
    llm: BaseChatModel,
    history: Optional[HistoryStore] = None,
) -> EstimationResult:
    """
    Normalize -> (zero short-circuit | prompt -> model + tools -> validate -> scale)
    -> schedule history write -> return.

    Raises ValidationError before any model call, or a GenerationError subclass.
    """
    t0 = t()
    normalized = normalize(request)
    core = normalized.core

    missing = zero_growth_inputs(normalized.properties)
    if missing:
        log.info("Zero growth input(s) %s for %s; skipping model", missing, core.crop_type)
        result = zero_yield_result(missing)
    else:
        payload = build_estimate_prompt(core, normalized.properties)
        estimate = await invoke(payload, AIEstimate, llm, tools=ESTIMATION_TOOLS)
        result = scale(estimate, core.plot_size)

    if history is not None:
        schedule_persist(history, result, core)

    log.info("⏱️  Estimate %s on %s acres: %dms (yield=%.1f %s)",
             core.crop_type, core.plot_size, round((t() - t0) * 1000),
             result.estimated_yield, result.price_unit)
    return result


async def suggest_suitable_crops(
    properties: Mapping[str, Any],
    llm: BaseChatModel,
    location: Optional[str] = None,
) -> SuggestCropOutput:
    """Recommend crops for the given soil/environmental conditions (no tools)."""
    payload = build_suggest_prompt(clean_properties(properties), (location or "").strip() or None)
    return await invoke(payload, SuggestCropOutput, llm)
