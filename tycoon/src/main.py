"""
Tycoon Q&A - Application Entry Point
=====================================
FastAPI application factory.  ``create_app`` wires the routes, CORS and
the request-validation handler; the ``RAGEngine`` is either injected
(tests) or built once at startup from ``Settings``.

Startup is fail-fast: importing ``tycoon.config.settings`` raises if a
required environment variable is missing, so the server never comes up
with a half-configured downstream client.

Run:
    uvicorn tycoon.src.main:app --port 8000
    python -m tycoon.src.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers

from tycoon.config.settings import Settings, settings as default_settings
from tycoon.src.api.routes import ALLOWED_METHODS, INVALID_QUESTION_MESSAGE, error_response, router
from tycoon.src.core.rag_engine import RAGEngine
from tycoon.src.utils.logger import get_logger

logger = get_logger(__name__)


class PreflightCORSMiddleware(CORSMiddleware):
    """
    ``CORSMiddleware`` whose preflight answer is always an empty 200.

    The CORS headers are the ones Starlette computed; a disallowed origin
    simply gets no ``Access-Control-Allow-Origin``, which the browser
    treats as a refusal.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        checked = super().preflight_response(request_headers=request_headers)
        headers = {k: v for k, v in checked.headers.items() if k.startswith("access-control-") or k == "vary"}
        return Response(status_code=200, headers=headers)


def build_engine(cfg: Settings) -> RAGEngine:
    """Create the production engine: Gemini embeddings + LanceDB + Gemini chat."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    from tycoon.src.database.vector_store import GameVectorStore

    logger.info("[STARTUP] GOOGLE_API_KEY set: %s | LanceDB: %s (table '%s', cloud=%s)", bool(cfg.GOOGLE_API_KEY.get_secret_value()), cfg.LANCEDB_URI, cfg.LANCEDB_TABLE_NAME, cfg.LANCEDB_API_KEY is not None)
    embedder = GoogleGenerativeAIEmbeddings(model=cfg.EMBEDDING_MODEL, google_api_key=cfg.GOOGLE_API_KEY.get_secret_value())
    store = GameVectorStore(settings=cfg)
    if not store.table_exists():
        logger.warning("[STARTUP] Table '%s' does not exist yet; run `python -m tycoon.scripts.setup_db`.", cfg.LANCEDB_TABLE_NAME)
    return RAGEngine(store, embedder, settings=cfg)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("[API] Rejected invalid request to %s: %d validation error(s).", request.url.path, len(exc.errors()))
    return error_response(400, INVALID_QUESTION_MESSAGE)


def create_app(engine: RAGEngine | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    engine
        Pre-built engine.  When omitted, one is created on startup.
    settings
        Explicit configuration; defaults to the process singleton.
    """
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.engine is None:
            app.state.engine = build_engine(cfg)
        logger.info("[STARTUP] Tycoon Q&A ready (env=%s).", cfg.ENV)
        yield

    app = FastAPI(title="War Tycoon Q&A", version="1.0.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.settings = cfg

    app.add_middleware(PreflightCORSMiddleware, allow_origins=cfg.CORS_ALLOW_ORIGINS, allow_methods=[m.strip() for m in ALLOWED_METHODS.split(",")], allow_headers=["*"])
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
