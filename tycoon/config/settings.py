"""
Tycoon Q&A - Centralized Configuration
=======================================
One ``BaseSettings`` class read from the process environment, then from
``.env`` at the repository root.

Required
--------
``GOOGLE_API_KEY`` (Gemini embeddings and chat) and ``LANCEDB_TABLE_NAME``
have no defaults.  Importing this module without them raises
``ValidationError``, so neither the API nor the scripts start half
configured.  Keys are ``SecretStr`` and print as ``**********``.

Vector index
------------
``LANCEDB_URI`` is a local directory (``data/lancedb`` by default) or a
``db://<project>`` URI; the latter also needs ``LANCEDB_API_KEY``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Service configuration.

    Fields
    ------
    ENV
        ``dev`` logs at DEBUG and returns error details on 500s; ``prod``
        logs warnings only and hides details.
    SEARCH_TOP_K : int
        Number of nearest neighbours requested from the vector index.
    CONTEXT_MAX_RECORDS : int
        Upper bound on records formatted into the prompt context.
    LLM_TEMPERATURE : float
        Sampling temperature; kept low to favour faithful answers.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"
    DATA_PROCESSED_DIR: Path = BASE_DIR / "data" / "processed"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED, no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str
    LANCEDB_URI: str = str(BASE_DIR / "data" / "lancedb")
    LANCEDB_API_KEY: SecretStr | None = None
    LANCEDB_REGION: str = "us-east-1"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.1
    LLM_MAX_OUTPUT_TOKENS: int = 2000

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_TOP_K: int = 5
    CONTEXT_MAX_RECORDS: int = 10

    # ── HTTP ───────────────────────────────────────────────────────────
    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    API_BASE_URL: str = "http://localhost:8000"

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("LANCEDB_TABLE_NAME")
    @classmethod
    def _table_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("LANCEDB_TABLE_NAME must not be blank")
        return v.strip()


    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0.0-1.0, got {v}")
        return v


    @field_validator("LLM_MAX_OUTPUT_TOKENS", "CONTEXT_MAX_RECORDS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("SEARCH_TOP_K")
    @classmethod
    def _top_k_range(cls, v: int) -> int:
        if not 1 <= v <= 50:
            raise ValueError(f"SEARCH_TOP_K must be 1-50, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1-16, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=_ENV_FILE, env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from tycoon.config.settings import settings
settings = Settings()
