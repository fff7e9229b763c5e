"""Admin endpoints over the stored question/answer history."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from recall.api.dependencies import get_resolver, require_admin
from recall.api.schemas.ask import ClearHistoryResponse, ErrorResponse, HistoryRecord
from recall.services.resolver import AnswerResolver

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["History"],
    dependencies=[Depends(require_admin)],
    responses={403: {"model": ErrorResponse, "description": "Missing or invalid X-API-Key"}},
)


@router.get(
    "/history",
    response_model=list[HistoryRecord],
    response_model_exclude_none=True,
    summary="List stored questions and answers",
)
async def get_history(
    resolver: Annotated[AnswerResolver, Depends(get_resolver)],
) -> list[dict]:
    return [record.to_dict() for record in await resolver.history()]


@router.post(
    "/clear-history",
    response_model=ClearHistoryResponse,
    responses={500: {"model": ErrorResponse, "description": "History could not be cleared"}},
    summary="Delete all stored questions and answers",
)
async def clear_history(
    resolver: Annotated[AnswerResolver, Depends(get_resolver)],
) -> ClearHistoryResponse:
    await resolver.clear_history()
    return ClearHistoryResponse(message="Chat history has been cleared.")
