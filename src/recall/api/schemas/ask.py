"""Request and response schemas for the question endpoints."""

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class AskRequest(BaseModel):
    """Body of `POST /ask`."""

    question: StrictStr = Field(
        description="The customer's question, as typed.",
        examples=["What does Reflections of You smell like?"],
    )

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"question": "Is this perfume good for evenings?"}]}
    )


class AskResponse(BaseModel):
    reply: str = Field(description="Answer to the question, reused or freshly generated.")


class HistoryRecord(BaseModel):
    """A stored question/answer pair."""

    question: str
    answer: str
    timestamp: str = Field(examples=["2024-05-01T10:00:00.000Z"])
    fingerprint: list[float] | None = None


class ClearHistoryResponse(BaseModel):
    message: str = Field(examples=["Chat history has been cleared."])


class ErrorResponse(BaseModel):
    error: str
