"""Question answering endpoint for the StackAlchemy API.

The answer is streamed as newline-delimited JSON. The first line is a
``references`` event listing the files used as context; each following line
is a ``delta`` event with the next piece of answer text. If the model fails
mid-answer, a final ``error`` event is sent instead of breaking the stream.
"""

import json
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from api.auth import CurrentUserDep
from api.dependencies import ProjectServiceDep, QuestionAnswererDep
from core.errors import procedure
from core.projects import ProjectService
from core.qa import AnswerStream, QuestionAnswerer

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}/ask", tags=["Question Answering"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class AskRequest(BaseModel):
    """Request model for asking a question."""

    question: str = Field(..., min_length=1, max_length=2000, description="The question")


@procedure("Failed to answer question")
async def start_answer(
    service: ProjectService,
    answerer: QuestionAnswerer,
    user_id: str,
    project_id: str,
    question: str,
) -> AnswerStream:
    """Check access to the project and retrieve the answer context."""
    await service.get_project(user_id, project_id)
    return await answerer.ask(project_id, question)


def _event(payload: dict[str, object]) -> str:
    return json.dumps(payload) + "\n"


async def stream_events(answer: AnswerStream, project_id: str) -> AsyncIterator[str]:
    """Serialize an answer stream into NDJSON events."""
    yield _event(
        {
            "type": "references",
            "files": [ref.model_dump() for ref in answer.files_references],
        }
    )
    try:
        async for chunk in answer.chunks:
            yield _event({"type": "delta", "text": chunk})
    except Exception:
        logger.exception("answer_stream_failed", project_id=project_id)
        yield _event({"type": "error", "message": "Failed to generate answer"})


@router.post(
    "",
    summary="Ask a question",
    description="Stream an answer about the project's code as NDJSON events.",
    response_class=StreamingResponse,
)
async def ask_question(
    project_id: str,
    request: AskRequest,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
    answerer: QuestionAnswererDep,
) -> StreamingResponse:
    """Answer a question about a project's code."""
    answer = await start_answer(service, answerer, user_id, project_id, request.question)
    logger.info("answer_started", project_id=project_id, files=len(answer.files_references))
    return StreamingResponse(stream_events(answer, project_id), media_type=NDJSON_MEDIA_TYPE)
