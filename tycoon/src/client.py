"""
Tycoon Q&A - HTTP Client
=========================
Single-call client for ``POST /api/chat``.

Every failure (transport error, non-2xx status, malformed body) surfaces
as ``AskQuestionError`` with the original exception chained, so callers
only have one condition to handle.

Usage:
    from tycoon.src.client import ask_question
    answer = await ask_question("How fast is the Spitfire?")
"""

from __future__ import annotations

import logging

import httpx

# Plain ``logging``: the client must import without the server configuration.
logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"
DEFAULT_TIMEOUT_SECONDS = 60.0


class AskQuestionError(RuntimeError):
    """The backend could not produce an answer."""


def _default_base_url() -> str:
    from tycoon.config.settings import settings

    return settings.API_BASE_URL


async def ask_question(question: str, base_url: str | None = None, client: httpx.AsyncClient | None = None) -> str:
    """
    Send *question* to the chat endpoint and return the answer text.

    Args:
        question: The user's question about War Tycoon.
        base_url: Server root; defaults to ``settings.API_BASE_URL``, read only
                  when no URL is given.
        client:   Optional shared ``httpx.AsyncClient`` (owned by the caller).

    Raises:
        AskQuestionError: On any failure to obtain an answer.
    """
    url = (base_url or _default_base_url()).rstrip("/") + CHAT_PATH
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS) as owned:
                response = await owned.post(url, json={"question": question})
        else:
            response = await client.post(url, json={"question": question})
        response.raise_for_status()
        answer = response.json()["answer"]
        if not isinstance(answer, str):
            raise TypeError(f"'answer' must be a string, got {type(answer).__name__}")
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
        logger.error("Error in ask_question: %s", exc)
        raise AskQuestionError("Failed to get answer from AI") from exc
    return answer
