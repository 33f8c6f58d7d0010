"""
Tycoon Q&A - GameVectorStore
=============================
OOP wrapper around LanceDB providing a clean interface for:
  • Nearest-neighbour search over pre-computed query vectors
  • Direct fetch of documents by id
  • Batched upsert of knowledge-base records (embedding + metadata)

Design decisions:
  • **Singleton DB connection**: ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per URI so every store instance shares it.
  • **Local or hosted**: ``LANCEDB_URI`` may be a directory or a LanceDB
    Cloud ``db://`` URI; the rest of the code does not care which.
  • **Similarity, not distance**: the table is searched with cosine
    distance and hits are reported as ``score = 1 - distance`` so that
    higher is better everywhere above this module.
  • **Polymorphic metadata** is stored as a JSON column next to a few
    flat, filterable columns (``entity_type``, ``info_type``, ``item_name``).

Usage:
    from tycoon.src.database.vector_store import GameVectorStore

    store = GameVectorStore(embedder=embedder)
    store.upsert_records([{"id": "spitfire_general_info", "metadata": {...}}])
    hits = store.query(embedder.embed_query("how fast is the spitfire"), top_k=5)
    docs = store.fetch(["spitfire_stat_speed"])
"""

from __future__ import annotations

import json
import threading
from typing import Any, Protocol, runtime_checkable

import lancedb
import pyarrow as pa

from tycoon.config.settings import Settings, settings as default_settings
from tycoon.src.core.records import RetrievedRecord
from tycoon.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
KnowledgeRecord = dict[str, Any]


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


# ── Constants ──────────────────────────────────────────────────────────
_EMBED_BATCH_SIZE = 64
_DISTANCE_TYPE = "cosine"
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def build_schema(dimension: int) -> pa.Schema:
    """Arrow schema of the knowledge-base table for *dimension*-sized vectors."""
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("text", pa.utf8()),
        pa.field("entity_type", pa.utf8()),
        pa.field("info_type", pa.utf8()),
        pa.field("item_name", pa.utf8()),
        pa.field("metadata", pa.utf8()),
    ])


def _get_connection(uri: str, api_key: str | None = None, region: str = "us-east-1") -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *uri*.

    Thread-safe via ``_DB_LOCK``.
    """
    if uri not in _db_connection_cache:
        with _DB_LOCK:
            if uri not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", uri)
                if api_key:
                    _db_connection_cache[uri] = lancedb.connect(uri, api_key=api_key, region=region)
                else:
                    _db_connection_cache[uri] = lancedb.connect(uri)
    return _db_connection_cache[uri]


def _sql_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _list_table_names(db: Any) -> list[str]:
    """Names of every table in *db*, walking ``list_tables`` pages when the client has it."""
    if not hasattr(db, "list_tables"):
        return list(db.table_names())
    names: list[str] = []
    token = None
    while True:
        page = db.list_tables(page_token=token)
        if isinstance(page, (list, tuple)):
            return names + list(page)
        names.extend(page.tables)
        token = page.page_token
        if not token:
            return names


class GameVectorStore:
    """
    High-level abstraction over the LanceDB knowledge-base table.

    Parameters
    ----------
    embedder : Embedder | None
        Needed only for ``upsert_records``; queries take ready vectors.
    uri
        Override the database URI.  Defaults to ``settings.LANCEDB_URI``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    settings
        Explicit configuration object (defaults to the process singleton).
    """

    __slots__ = ("embedder", "_uri", "_table_name", "db", "table")

    def __init__(self, embedder: Embedder | None = None, uri: str | None = None, table_name: str | None = None, settings: Settings | None = None) -> None:
        cfg = settings or default_settings
        self.embedder: Embedder | None = embedder
        self._uri: str = str(uri or cfg.LANCEDB_URI)
        self._table_name: str = table_name or cfg.LANCEDB_TABLE_NAME
        api_key = cfg.LANCEDB_API_KEY.get_secret_value() if cfg.LANCEDB_API_KEY else None
        self.db: lancedb.DBConnection = _get_connection(self._uri, api_key, cfg.LANCEDB_REGION)
        self.table: Any = None
        self._open_table()


    @property
    def table_name(self) -> str:
        return self._table_name


    def _open_table(self) -> Any:
        """Open the table if it exists; it is created on first upsert."""
        if self.table is None and self._table_name in _list_table_names(self.db):
            self.table = self.db.open_table(self._table_name)
            logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
        return self.table


    def _require_table(self) -> Any:
        table = self._open_table()
        if table is None:
            raise RuntimeError(f"Table '{self._table_name}' does not exist. Run the ingestion pipeline first (python -m tycoon.scripts.setup_db).")
        return table

    # ══════════════════════════════════════════════════════════════════
    #  READ PATH
    # ══════════════════════════════════════════════════════════════════

    def query(self, vector: list[float], top_k: int = 5) -> list[RetrievedRecord]:
        """
        Nearest-neighbour search for *vector*.

        Returns
        -------
        list[RetrievedRecord]
            Up to *top_k* hits, best first, with ``score = 1 - cosine distance``.
        """
        table = self._require_table()
        rows = table.search(vector, vector_column_name="vector").distance_type(_DISTANCE_TYPE).limit(top_k).to_list()
        logger.info("Query returned %d result(s) (top_k=%d).", len(rows), top_k)
        return [self._row_to_record(row) for row in rows]


    def fetch(self, ids: list[str]) -> dict[str, RetrievedRecord]:
        """
        Fetch documents by id.

        Missing ids are simply absent from the result.  Returned records
        carry ``score=None`` and ``fetched=True``; callers assign any
        priority score they need.
        """
        if not ids:
            return {}
        table = self._require_table()
        where = f"id IN ({', '.join(_sql_quote(i) for i in ids)})"
        rows = table.search().where(where).limit(len(ids)).to_list()
        found = {str(row["id"]): self._row_to_record(row, fetched=True) for row in rows}
        logger.info("Fetched %d/%d requested id(s).", len(found), len(ids))
        return found


    @staticmethod
    def _row_to_record(row: dict[str, Any], fetched: bool = False) -> RetrievedRecord:
        raw_metadata = row.get("metadata") or "{}"
        try:
            metadata = json.loads(raw_metadata)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Row '%s' has unreadable metadata JSON; using flat columns only.", row.get("id"))
            metadata = {}
        if not isinstance(metadata, dict):
            metadata = {}
        for key in ("entity_type", "info_type", "item_name"):
            if row.get(key) and key not in metadata:
                metadata[key] = row[key]

        score: float | None = None
        if not fetched and row.get("_distance") is not None:
            score = 1.0 - float(row["_distance"])
        return RetrievedRecord(id=str(row["id"]), score=score, metadata=metadata, fetched=fetched)

    # ══════════════════════════════════════════════════════════════════
    #  WRITE PATH
    # ══════════════════════════════════════════════════════════════════

    def upsert_records(self, records: list[KnowledgeRecord], texts: list[str]) -> int:
        """
        Embed *texts* and merge-insert *records* keyed on ``id``.

        Parameters
        ----------
        records
            Knowledge-base records, each ``{"id": str, "metadata": dict}``.
        texts
            Parallel list of the text to embed for each record.

        Returns
        -------
        int
            Number of rows written.

        Raises
        ------
        ValueError
            If ``records`` and ``texts`` have mismatched lengths.
        RuntimeError
            If no embedder was injected.
        """
        if len(records) != len(texts):
            raise ValueError(f"Length mismatch: {len(records)} records vs {len(texts)} texts.")
        if not records:
            return 0
        if self.embedder is None:
            raise RuntimeError("GameVectorStore was created without an embedder; cannot upsert.")

        logger.info("Embedding %d record(s) in batches of %d …", len(texts), _EMBED_BATCH_SIZE)

        # ── Batched embedding ──────────────────────────────────────────
        all_vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                all_vectors.extend(self.embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d-%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        # ── Build Arrow table ──────────────────────────────────────────
        schema = build_schema(len(all_vectors[0]))
        rows = [
            {"id": rec["id"], "vector": [float(x) for x in vec], "text": txt, "entity_type": str(rec["metadata"].get("entity_type", "")), "info_type": str(rec["metadata"].get("info_type", "")), "item_name": str(rec["metadata"].get("item_name", "")), "metadata": json.dumps(rec["metadata"], ensure_ascii=False)}
            for rec, txt, vec in zip(records, texts, all_vectors)
        ]
        data = pa.Table.from_pylist(rows, schema=schema)

        table = self._open_table()
        if table is None:
            self.table = self.db.create_table(self._table_name, data=data)
            logger.info("Created new table '%s'.", self._table_name)
        else:
            table.merge_insert("id").when_matched_update_all().when_not_matched_insert_all().execute(data)

        logger.info("Upserted %d record(s). Table '%s' now has %d total rows.", len(rows), self._table_name, self.count())
        return len(rows)


    def count(self) -> int:
        """Return the total number of rows in the table."""
        table = self._open_table()
        return table.count_rows() if table is not None else 0


    def table_exists(self) -> bool:
        return self._table_name in _list_table_names(self.db)


    def drop_table(self) -> None:
        """Drop the vector table (useful for testing / re-ingestion)."""
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist; nothing to drop.", self._table_name)
        except OSError as exc:
            logger.error("Filesystem error dropping table '%s': %s", self._table_name, exc)
            raise


    def __repr__(self) -> str:
        return f"GameVectorStore(uri='{self._uri}', table='{self._table_name}', rows={self.count()})"
