"""
Form submission boundary: /estimate and the property catalogue.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends
from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import ValidationError as SchemaError

from croppredict.di import get_history_store, get_llm
from croppredict.errors import EstimationError
from croppredict.schemas import EstimateResponse, EstimationRequest
from croppredict.services.history import HistoryStore
from croppredict.services.pipeline import estimate_crop_yield
from croppredict.soil_properties import SOIL_PROPERTIES, SoilProperty

log = logging.getLogger("croppredict.api")

router = APIRouter(tags=["estimate"])


def format_schema_error(e: SchemaError) -> str:
    return ", ".join(
        f"{'.'.join(str(p) for p in err['loc'])} - {err['msg']}" for err in e.errors()
    )


@router.post("/estimate", response_model=EstimateResponse)
async def estimate(
    data: Dict[str, Any] = Body(...),
    llm: BaseChatModel = Depends(get_llm),
    history: HistoryStore = Depends(get_history_store),
):
    """
    Estimate yield and market value for a crop on a plot.
    The history write is scheduled in the background and never affects this response.
    """
    try:
        req = EstimationRequest.from_form(data)
        result = await estimate_crop_yield(req, llm=llm, history=history)
    except EstimationError as e:
        log.warning("Estimation failed (%s): %s", type(e).__name__, e.user_message)
        return EstimateResponse(success=False, error=e.user_message)
    except SchemaError as e:
        return EstimateResponse(success=False, error=format_schema_error(e))
    except Exception:
        log.exception("Error in estimate")
        return EstimateResponse(success=False, error="Failed to estimate crop yield. Please try again.")
    return EstimateResponse(success=True, data=result)


@router.get("/properties", response_model=List[SoilProperty])
async def properties():
    """Recognized soil/environmental properties with ranges and form defaults."""
    return SOIL_PROPERTIES
