"""
Tycoon Q&A - API Routes
========================
HTTP surface of the chatbot:

  - ``POST    /api/chat``  → answer a question
  - ``OPTIONS /api/chat``  → CORS preflight (200, empty body)
  - other methods          → 405
  - ``GET     /health``    → liveness probe

Route handlers are thin controllers: validate the request, delegate to
``RAGEngine`` and shape the response.  Upstream failures are logged with
their traceback and reported to the client as a generic 500.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tycoon.config.prompt_templates import GENERIC_ERROR_MESSAGE
from tycoon.config.settings import Settings
from tycoon.src.core.rag_engine import EmptyQuestionError, RAGEngine
from tycoon.src.utils.logger import get_logger

logger = get_logger(__name__)

INVALID_QUESTION_MESSAGE = "Question is required and must be a non-empty string."
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed"
ALLOWED_METHODS = "POST, OPTIONS"

router = APIRouter()


class ChatRequest(BaseModel):
    question: str


class ChatResponse(BaseModel):
    answer: str


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


def get_engine(request: Request) -> RAGEngine:
    return request.app.state.engine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def error_response(status_code: int, message: str, details: str | None = None, headers: dict[str, str] | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.options("/api/chat", include_in_schema=False)
async def chat_preflight() -> Response:
    return Response(status_code=200)


@router.post("/api/chat", response_model=ChatResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
async def chat(payload: ChatRequest, engine: RAGEngine = Depends(get_engine), settings: Settings = Depends(get_settings)) -> ChatResponse | JSONResponse:
    """Answer a War Tycoon question from the knowledge base."""
    if not payload.question.strip():
        return error_response(400, INVALID_QUESTION_MESSAGE)

    try:
        answer = await engine.answer(payload.question)
    except EmptyQuestionError as exc:
        return error_response(400, str(exc))
    except Exception as exc:
        logger.exception("[API] Error while answering question.")
        details = f"{type(exc).__name__}: {exc}" if settings.ENV == "dev" else None
        return error_response(500, GENERIC_ERROR_MESSAGE, details)

    return ChatResponse(answer=answer)


@router.api_route("/api/chat", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def chat_method_not_allowed() -> JSONResponse:
    return error_response(405, METHOD_NOT_ALLOWED_MESSAGE, headers={"Allow": ALLOWED_METHODS})
