"""
Tycoon Q&A - IngestionPipeline
===============================
Loads knowledge-base records from JSON files into the
``GameVectorStore``.

Input format
------------
``*.json`` files hold either a list of records or ``{"records": [...]}``;
``*.jsonl`` files hold one record per line.  A record is::

    {"id": "spitfire_stat_speed",
     "metadata": {"entity_type": "aircraft", "info_type": "stat_speed",
                  "item_name": "Spitfire", "text_content_source": "...", ...}}

The embedded text is the cleaned ``text_content_source``; records without
one are embedded from their item name and info type.

Key design decisions:
    • **Dependency Injection**: receives the ``GameVectorStore``.
    • **Concurrency**: files are read and validated in parallel via
      ``ThreadPoolExecutor``; embedding + upsert happen once, in order.
    • **Caching**: MD5-based file hashing skips unchanged files.
    • **Idempotent**: upserts are keyed on ``id``; re-ingesting a file
      replaces its records.

Usage:
    from tycoon.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(vector_store)
    result   = pipeline.run()
"""

from __future__ import annotations

import hashlib
import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from tycoon.config.settings import Settings, settings as default_settings
from tycoon.src.database.vector_store import GameVectorStore, KnowledgeRecord
from tycoon.src.utils.logger import get_logger
from tycoon.src.utils.text_utils import clean_text

logger = get_logger(__name__)

# File extensions the pipeline knows how to read
_SUPPORTED_EXTENSIONS = {".json", ".jsonl"}

HASH_CACHE_FILENAME = "ingestion_hashes.json"


class IngestionPipeline:
    """
    End-to-end knowledge-base ingestion: read → validate → embed → upsert.

    Parameters
    ----------
    vector_store
        An initialised ``GameVectorStore`` with an embedder (injected).
    source_dir
        Override the source directory. Defaults to ``settings.DATA_RAW_DIR``.
    max_workers
        Number of parallel threads for file reading.
    settings
        Explicit configuration; defaults to the process singleton.
    """

    def __init__(self, vector_store: GameVectorStore, source_dir: Path | None = None, max_workers: int | None = None, settings: Settings | None = None) -> None:
        cfg = settings or default_settings
        self._store = vector_store
        self._source_dir = Path(source_dir or cfg.DATA_RAW_DIR)
        self._max_workers = max_workers or cfg.MAX_WORKERS

        self._hash_cache_path: Path = cfg.DATA_PROCESSED_DIR / HASH_CACHE_FILENAME
        self._hash_cache: dict[str, str] = self._load_hash_cache()

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def run(self) -> dict[str, Any]:
        """
        Execute the ingestion pipeline.

        Returns
        -------
        dict
            Execution summary with keys:
            ``total_files``, ``files_processed``, ``files_skipped``,
            ``total_records``, ``records_rejected``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        source = self._source_dir

        if not source.exists():
            logger.warning("Source directory does not exist: %s", source)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in source.iterdir() if f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("No supported files found in %s", source)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("Starting ingestion: %d file(s) found in %s", len(files), source)

        files_skipped = 0
        loaded: dict[Path, tuple[str, list[Any]]] = {}

        # ── Parallel file reading ──────────────────────────────────────
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            future_to_path = {pool.submit(self._load_file, fp): fp for fp in files}

            for future in as_completed(future_to_path):
                filepath = future_to_path[future]
                try:
                    result = future.result()
                except (OSError, ValueError):
                    logger.exception("Failed to read file: %s", filepath.name)
                    continue
                if result is None:
                    files_skipped += 1
                else:
                    loaded[filepath] = result

        # ── Validate, dedupe, embed + upsert (file order is stable) ────
        seen_ids: set[str] = set()
        records: list[KnowledgeRecord] = []
        texts: list[str] = []
        rejected = 0
        for filepath in sorted(loaded):
            _, raw_records = loaded[filepath]
            for raw in raw_records:
                record = self.normalise_record(raw)
                if record is None or record["id"] in seen_ids:
                    rejected += 1
                    logger.warning("Rejected record in %s: %s", filepath.name, self._describe(raw))
                    continue
                seen_ids.add(record["id"])
                records.append(record)
                texts.append(self.embedding_text(record))

        stored = self._store.upsert_records(records, texts) if records else 0

        for filepath, (file_hash, _) in loaded.items():
            self._hash_cache[filepath.name] = file_hash
        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete: %d file(s) processed, %d skipped, %d record(s) stored, %d rejected in %.2fs.", len(loaded), files_skipped, stored, rejected, elapsed)
        return self._summary(len(files), len(loaded), files_skipped, stored, rejected, elapsed)

    # ══════════════════════════════════════════════════════════════════
    #  PER-FILE / PER-RECORD PROCESSING
    # ══════════════════════════════════════════════════════════════════

    def _load_file(self, filepath: Path) -> tuple[str, list[Any]] | None:
        """
        Read one file.

        Returns
        -------
        tuple | None
            ``(file_hash, raw_records)``, or ``None`` on a cache hit.
        """
        file_hash = self._compute_file_hash(filepath)
        if self._hash_cache.get(filepath.name) == file_hash:
            logger.info("CACHE_HIT: skipping unchanged file: %s", filepath.name)
            return None

        raw_records = self._read_file(filepath)
        logger.info("File '%s' → %d raw record(s).", filepath.name, len(raw_records))
        return file_hash, raw_records


    @staticmethod
    def _read_file(filepath: Path) -> list[Any]:
        text = filepath.read_text(encoding="utf-8")
        if filepath.suffix.lower() == ".jsonl":
            return [json.loads(line) for line in text.splitlines() if line.strip()]

        data = json.loads(text)
        if isinstance(data, dict):
            data = data.get("records", [])
        if not isinstance(data, list):
            raise ValueError(f"{filepath.name}: expected a list of records")
        return data


    @staticmethod
    def normalise_record(raw: Any) -> KnowledgeRecord | None:
        """
        Return ``{"id", "metadata"}`` for a well-formed record, else ``None``.

        Records without a ``metadata`` object use their remaining keys as
        metadata.
        """
        if not isinstance(raw, dict):
            return None
        record_id = raw.get("id")
        if not isinstance(record_id, str) or not record_id.strip():
            return None
        metadata = raw.get("metadata")
        if metadata is None:
            metadata = {k: v for k, v in raw.items() if k != "id"}
        if not isinstance(metadata, dict):
            return None
        return {"id": record_id.strip(), "metadata": metadata}


    @staticmethod
    def embedding_text(record: KnowledgeRecord) -> str:
        metadata = record["metadata"]
        source = metadata.get("text_content_source")
        if isinstance(source, str) and source.strip():
            return clean_text(source)
        parts = [str(metadata.get(key, "")) for key in ("item_name", "info_type")]
        return " ".join(p for p in parts if p) or record["id"]


    @staticmethod
    def _describe(raw: Any) -> str:
        if isinstance(raw, dict):
            return f"id={raw.get('id')!r}"
        return type(raw).__name__

    # ══════════════════════════════════════════════════════════════════
    #  MD5 CACHING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _compute_file_hash(filepath: Path) -> str:
        """Return the MD5 hex digest of a file's contents."""
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()

    def _load_hash_cache(self) -> dict[str, str]:
        """Load the hash cache from disk (or return empty dict)."""
        if self._hash_cache_path.exists():
            try:
                return json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Corrupt hash cache; starting fresh.")
        return {}

    def _save_hash_cache(self) -> None:
        """Persist the hash cache to disk."""
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Hash cache saved to %s", self._hash_cache_path)

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, processed: int, skipped: int, records: int, rejected: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_skipped": skipped,
            "total_records": records,
            "records_rejected": rejected,
            "elapsed_seconds": round(elapsed, 2),
        }
