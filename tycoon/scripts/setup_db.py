"""
Tycoon Q&A - Knowledge-Base Loader
===================================
Builds (or refreshes) the LanceDB table the chatbot answers from.

Steps, each timed:
    settings   load configuration (fails fast on missing keys)
    embedder   create the Gemini embedding model
    lancedb    open the store; apply --drop / --purge / --drop-only
    ingest     run ``IngestionPipeline`` over the source directory

Flags:
    --drop       Drop the table first; unchanged files stay cached.
    --purge      Drop the table and forget the hash cache (re-embed everything).
    --drop-only  Drop the table and stop.
    --source     Read records from another directory.

Usage:
    python -m tycoon.scripts.setup_db
    python -m tycoon.scripts.setup_db --purge
    python -m tycoon.scripts.setup_db --source ./exports
"""

from __future__ import annotations

import argparse
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

_RULE_WIDTH = 60
_EMPTY_SUMMARY = {"total_files": 0, "files_processed": 0, "files_skipped": 0, "total_records": 0, "records_rejected": 0}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Load the War Tycoon knowledge base into LanceDB.")
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--drop", action="store_true", help="Drop the table before loading; unchanged files stay cached.")
    modes.add_argument("--purge", action="store_true", help="Drop the table and clear the hash cache so every file is re-embedded.")
    modes.add_argument("--drop-only", action="store_true", help="Drop the table and exit.")
    parser.add_argument("--source", type=Path, default=None, help="Directory of *.json / *.jsonl record files (default: DATA_RAW_DIR).")
    return parser.parse_args(argv)


@contextmanager
def _timed(timings: dict[str, float], stage: str) -> Iterator[None]:
    t0 = time.perf_counter()
    try:
        yield
    finally:
        timings[stage] = (time.perf_counter() - t0) * 1000


def _load_settings() -> Any:
    try:
        from tycoon.config.settings import settings
    except Exception as exc:
        print(f"\n[FATAL] Invalid configuration (check .env):\n\n  {exc}\n", file=sys.stderr)
        sys.exit(1)
    return settings


def _clear_hash_cache(cfg: Any, logger: Any) -> None:
    from tycoon.src.core.ingestor import HASH_CACHE_FILENAME

    cache_path = cfg.DATA_PROCESSED_DIR / HASH_CACHE_FILENAME
    if not cache_path.exists():
        logger.info("[SETUP] No hash cache at %s.", cache_path)
        return
    cache_path.unlink()
    logger.warning("[SETUP] Hash cache removed: %s", cache_path)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()
    timings: dict[str, float] = {}

    with _timed(timings, "settings"):
        cfg = _load_settings()

    from tycoon.src.utils.logger import get_logger

    logger = get_logger("tycoon.scripts.setup_db")
    source_dir = args.source or cfg.DATA_RAW_DIR
    _print_banner(cfg, source_dir)

    with _timed(timings, "embedder"):
        try:
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            embedder = GoogleGenerativeAIEmbeddings(model=cfg.EMBEDDING_MODEL, google_api_key=cfg.GOOGLE_API_KEY.get_secret_value())
        except Exception:
            logger.exception("[SETUP] Could not create embedding model '%s'.", cfg.EMBEDDING_MODEL)
            sys.exit(1)

    with _timed(timings, "lancedb"):
        from tycoon.src.database.vector_store import GameVectorStore

        store = GameVectorStore(embedder=embedder, settings=cfg)
        if args.drop or args.purge or args.drop_only:
            logger.warning("[SETUP] Dropping table '%s'.", store.table_name)
            store.drop_table()
        if args.purge:
            _clear_hash_cache(cfg, logger)

    logger.info("[SETUP] Startup: settings=%.1fms, embedder=%.1fms, lancedb=%.1fms", timings["settings"], timings["embedder"], timings["lancedb"])

    if args.drop_only:
        _print_report(_EMPTY_SUMMARY, timings, time.perf_counter() - t_start)
        return

    logger.info("[SETUP] Table '%s' holds %d row(s) before loading.", store.table_name, store.count())
    from tycoon.src.core.ingestor import IngestionPipeline

    with _timed(timings, "ingest"):
        summary = IngestionPipeline(vector_store=store, source_dir=source_dir, settings=cfg).run()

    _print_report(summary, timings, time.perf_counter() - t_start)


def _mask(secret: str) -> str:
    return f"****{secret[-4:]}" if len(secret) > 4 else "****"


def _print_banner(cfg: Any, source_dir: Path) -> None:
    rows = [
        ("Environment", cfg.ENV),
        ("Embedding", cfg.EMBEDDING_MODEL),
        ("LanceDB URI", cfg.LANCEDB_URI),
        ("Table", cfg.LANCEDB_TABLE_NAME),
        ("Source dir", source_dir),
        ("Workers", cfg.MAX_WORKERS),
        ("API key", _mask(cfg.GOOGLE_API_KEY.get_secret_value())),
    ]
    print("\n" + "=" * _RULE_WIDTH)
    print("  WAR TYCOON Q&A - knowledge-base loader")
    print("=" * _RULE_WIDTH)
    for label, value in rows:
        print(f"  {label:<13}: {value}")
    print("=" * _RULE_WIDTH + "\n")


def _print_report(summary: dict[str, Any], timings: dict[str, float], elapsed: float) -> None:
    counts = [
        ("Files scanned", summary["total_files"]),
        ("Files loaded", summary["files_processed"]),
        ("Files unchanged", summary["files_skipped"]),
        ("Records stored", summary["total_records"]),
        ("Records rejected", summary["records_rejected"]),
    ]
    print("\n" + "=" * _RULE_WIDTH)
    print("  SUMMARY")
    print("-" * _RULE_WIDTH)
    for label, value in counts:
        print(f"  {label:<18}: {value}")
    print("-" * _RULE_WIDTH)
    for stage, ms in timings.items():
        print(f"  {stage:<18}: {ms:>9.1f}ms")
    print(f"  {'total':<18}: {elapsed:>9.2f}s")
    print("=" * _RULE_WIDTH + "\n")


if __name__ == "__main__":
    main()
