import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from stockpilot.core.dates import utc_now
from stockpilot.core.errors import ReorderSuggestionError
from stockpilot.dependencies import get_store
from stockpilot.schemas.reorder import (
    ReorderFailureResponse,
    ReorderSuggestionRequest,
    ReorderSuggestionResponse,
)
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.reorder_service import generate_reorder_suggestion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reorder-suggestions", tags=["Reorder Suggestions"])


def _failure(status_code: int, message: str) -> JSONResponse:
    body = ReorderFailureResponse(error=message, timestamp=utc_now())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@router.post(
    "",
    response_model=ReorderSuggestionResponse,
    responses={
        404: {"model": ReorderFailureResponse},
        500: {"model": ReorderFailureResponse},
        502: {"model": ReorderFailureResponse},
        504: {"model": ReorderFailureResponse},
    },
)
def create_reorder_suggestion(
    payload: ReorderSuggestionRequest,
    store: InventoryStore = Depends(get_store),
):
    try:
        return generate_reorder_suggestion(store, payload.product_id)
    except ReorderSuggestionError as exc:
        logger.error(
            "Reorder suggestion failed for product %s: %s",
            payload.product_id,
            exc,
            extra={"product_id": payload.product_id},
        )
        return _failure(exc.status_code, str(exc))
    except Exception:
        logger.exception("Unexpected error generating reorder suggestion")
        return _failure(500, "Unexpected error generating reorder suggestion")


__all__ = ["router"]
