"""
/suggest-crops endpoint
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from langchain_core.language_models.chat_models import BaseChatModel

from croppredict.di import get_llm
from croppredict.errors import EstimationError
from croppredict.schemas import SuggestCropResponse, parse_properties
from croppredict.services.pipeline import suggest_suitable_crops

log = logging.getLogger("croppredict.api")

router = APIRouter(tags=["suggest"])

@router.post("/suggest-crops", response_model=SuggestCropResponse)
async def suggest_crops(
    data: Dict[str, Any] = Body(...),
    llm: BaseChatModel = Depends(get_llm),
):
    """Suggest 3-5 crops suited to the given soil/environmental conditions."""
    try:
        props = parse_properties(data)
        location = data.get("location")
        out = await suggest_suitable_crops(props, llm=llm, location=location if isinstance(location, str) else None)
    except EstimationError as e:
        return SuggestCropResponse(success=False, error=e.user_message)
    except Exception:
        log.exception("Error in suggest_crops")
        return SuggestCropResponse(success=False, error="Failed to suggest crops. Please try again.")
    return SuggestCropResponse(success=True, data=out)
