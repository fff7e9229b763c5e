"""Question answering endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response

from recall.api.dependencies import enforce_rate_limit, get_resolver
from recall.api.schemas.ask import AskRequest, AskResponse, ErrorResponse
from recall.services.resolver import AnswerResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ask"])


@router.post(
    "/ask",
    response_model=AskResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing, non-string or blank question"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "No reusable answer and generation failed"},
    },
    dependencies=[Depends(enforce_rate_limit)],
    summary="Answer a question",
    description="Answer from the hot cache, from a similar past question, "
    "or by generating a new answer which is then stored for reuse.",
)
async def ask(
    body: AskRequest,
    response: Response,
    resolver: Annotated[AnswerResolver, Depends(get_resolver)],
) -> AskResponse:
    resolution = await resolver.resolve(body.question)
    response.headers["X-Answer-Source"] = resolution.source.value
    return AskResponse(reply=resolution.answer)
