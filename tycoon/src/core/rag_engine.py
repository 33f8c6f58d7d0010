"""
Tycoon Q&A - RAG Engine
========================
Orchestrates the Retrieval-Augmented Generation pipeline behind
``POST /api/chat``.

``IntentDetector``
    Keyword heuristics over the lower-cased question: "list all planes"
    queries, the primary catalog item, and which stat documents the
    question asks for.

``RAGEngine``
    Stateless pipeline orchestrator.  Flow:
        1. Validate → reject blank questions before any network call
        2. Embed → one embedding call
        3. Retrieve → one top-K similarity query
        4. Intent → summary fetch and/or per-item document fetches
        5. Merge → sort by score, dedupe by id, cap
        6. Format → context string
        7. Prompt → system instruction + context + question
        8. Call Gemini → async LLM invocation
        9. Return trimmed answer (or the fixed fallback)

Failure policy
--------------
Embedding, query and completion errors propagate to the caller.  Direct
fetches are best-effort: a failed fetch is logged and the request goes on
with whatever context was already gathered.

Usage:
    from tycoon.src.core.rag_engine import RAGEngine
    engine = RAGEngine(vector_store, embedder)
    answer = await engine.answer("What is the speed of the Spitfire?")
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from tycoon.config.catalog import GENERAL_INFO_SUFFIX, KNOWN_ITEMS, OVERVIEW_FULL_TEXT_SUFFIX, STAT_HEALTH_SUFFIX, STAT_SPEED_SUFFIX, KnownItem, find_by_name
from tycoon.config.prompt_templates import ALL_AIRCRAFT_SUMMARY_DOC_ID, ALL_PLANES_KEYWORDS, FALLBACK_ANSWER, GENERAL_STAT_KEYWORDS, HEALTH_STAT_KEYWORDS, SPEED_STAT_KEYWORDS, SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from tycoon.config.settings import Settings, settings as default_settings
from tycoon.src.core.context_formatter import format_context
from tycoon.src.core.records import RetrievedRecord
from tycoon.src.database.vector_store import Embedder
from tycoon.src.utils.logger import get_logger
from tycoon.src.utils.text_utils import contains_any

logger = get_logger(__name__)

# ── Priority scores for directly fetched documents ─────────────────────
# Summary outranks item documents, which outrank typical semantic hits.
SUMMARY_FETCH_SCORE = 1.0
ITEM_FETCH_SCORE = 0.99

_CONTEXT_PREVIEW_CHARS = 2000


class EmptyQuestionError(ValueError):
    """Raised when the question is missing or whitespace-only."""


class AnswerResult(BaseModel):
    answer: str
    context: str
    records: list[RetrievedRecord]


# ══════════════════════════════════════════════════════════════════════
#  INTENT DETECTION
# ══════════════════════════════════════════════════════════════════════


class IntentDetector:
    """
    Keyword-based intent heuristics.

    All matching is case-insensitive substring matching against the
    question text.
    """

    __slots__ = ("_items",)

    def __init__(self, items: tuple[KnownItem, ...] = KNOWN_ITEMS) -> None:
        self._items = items


    @staticmethod
    def is_list_all(question_lower: str) -> bool:
        return contains_any(question_lower, ALL_PLANES_KEYWORDS)


    def item_from_matches(self, question_lower: str, matches: Iterable[RetrievedRecord]) -> KnownItem | None:
        """
        First semantic match whose ``item_name`` is a catalog item that the
        question also mentions by name or alias.
        """
        for match in matches:
            item_name = match.meta_str("item_name")
            if not item_name or not match.meta_str("entity_type"):
                continue
            item = find_by_name(item_name, self._items)
            if item is not None and item.mentioned_in(question_lower):
                return item
        return None


    def item_from_text(self, question_lower: str) -> KnownItem | None:
        """First catalog item whose name or alias occurs in the question."""
        for item in self._items:
            if item.mentioned_in(question_lower):
                return item
        return None


    @staticmethod
    def document_ids(item: KnownItem, question_lower: str) -> list[str]:
        """
        Per-item document ids the question calls for.

        Overview and general info are always wanted.  Speed and health
        stats are added on their own keywords, or both together when the
        question names the item and asks generically for stats/details.
        """
        ids = [item.document_id(OVERVIEW_FULL_TEXT_SUFFIX), item.document_id(GENERAL_INFO_SUFFIX)]

        wants_speed = contains_any(question_lower, SPEED_STAT_KEYWORDS)
        wants_health = contains_any(question_lower, HEALTH_STAT_KEYWORDS)
        wants_all_stats = item.mentioned_in(question_lower) and contains_any(question_lower, GENERAL_STAT_KEYWORDS)
        logger.debug("[INTENT] %s: speed=%s, health=%s, general=%s", item.name, wants_speed, wants_health, wants_all_stats)

        if wants_speed or wants_all_stats:
            ids.append(item.document_id(STAT_SPEED_SUFFIX))
        if wants_health or wants_all_stats:
            ids.append(item.document_id(STAT_HEALTH_SUFFIX))
        return ids


# ══════════════════════════════════════════════════════════════════════
#  RAG ENGINE
# ══════════════════════════════════════════════════════════════════════


class RAGEngine:
    """
    Orchestrates the full RAG pipeline: embed → retrieve → enrich → generate.

    Parameters
    ----------
    vector_store
        Object exposing ``query(vector, top_k)`` and ``fetch(ids)``
        (normally a ``GameVectorStore``).
    embedder
        An ``Embedder``-compatible object for query embedding.
    llm
        Optional chat model exposing ``ainvoke(messages)``.  Built from
        settings when omitted.
    settings
        Explicit configuration; defaults to the process singleton.
    intent_detector
        Optional custom ``IntentDetector``.
    """

    __slots__ = ("_store", "_embedder", "_llm", "_settings", "_intent")

    def __init__(self, vector_store: Any, embedder: Embedder, llm: Any = None, settings: Settings | None = None, intent_detector: IntentDetector | None = None) -> None:
        self._settings = settings or default_settings
        self._store = vector_store
        self._embedder = embedder
        self._llm = llm if llm is not None else self._init_llm(self._settings)
        self._intent = intent_detector or IntentDetector()


    @staticmethod
    def _init_llm(cfg: Settings) -> Any:
        """Initialise the Gemini chat model via LangChain."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=cfg.LLM_MODEL, temperature=cfg.LLM_TEMPERATURE, max_output_tokens=cfg.LLM_MAX_OUTPUT_TOKENS, google_api_key=cfg.GOOGLE_API_KEY.get_secret_value())
        logger.info("LLM initialised: %s (temperature=%.1f, max_output_tokens=%d)", cfg.LLM_MODEL, cfg.LLM_TEMPERATURE, cfg.LLM_MAX_OUTPUT_TOKENS)
        return llm


    async def answer(self, question: str) -> str:
        """Answer *question* from the knowledge base."""
        result = await self.answer_with_context(question)
        return result.answer


    async def answer_with_context(self, question: str) -> AnswerResult:
        """
        Full pipeline, returning the answer together with the context used.

        Raises
        ------
        EmptyQuestionError
            If *question* is blank.  No upstream call is made.
        Exception
            Whatever the embedder, the similarity query or the LLM raise.
        """
        if not isinstance(question, str) or not question.strip():
            raise EmptyQuestionError("Question is required and must be a non-empty string.")

        t_start = time.perf_counter()
        logger.info("[RAG] Received question: '%s'", question[:200])
        question_lower = question.lower()

        # ── 1. Embed ──────────────────────────────────────────────────
        t_embed = time.perf_counter()
        vector = self._embedder.embed_query(question)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        # ── 2. Similarity query ───────────────────────────────────────
        t_search = time.perf_counter()
        matches: list[RetrievedRecord] = list(self._store.query(vector, top_k=self._settings.SEARCH_TOP_K))
        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[RAG] Semantic search: %d match(es) in %.1fms", len(matches), search_ms)

        # ── 3. Intent-driven enrichment ───────────────────────────────
        t_fetch = time.perf_counter()
        enriched = self._enrich(question_lower, matches)
        fetch_ms = (time.perf_counter() - t_fetch) * 1000

        # ── 4. Merge ──────────────────────────────────────────────────
        final_records = self.merge_records(enriched, self._settings.CONTEXT_MAX_RECORDS)

        # ── 5. Format ─────────────────────────────────────────────────
        context = format_context(final_records)
        logger.debug("[RAG] Context (%d records, first %d chars):\n%s", len(final_records), _CONTEXT_PREVIEW_CHARS, context[:_CONTEXT_PREVIEW_CHARS])

        # ── 6. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        answer = await self._generate(context, question)
        llm_ms = (time.perf_counter() - t_llm) * 1000
        logger.info("[RAG] LLM response: %.1fms (%d chars)", llm_ms, len(answer))

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (embed=%.1f, search=%.1f, fetch=%.1f, llm=%.1f)", total_ms, embed_ms, search_ms, fetch_ms, llm_ms)
        return AnswerResult(answer=answer, context=context, records=final_records)

    # ══════════════════════════════════════════════════════════════════
    #  ENRICHMENT
    # ══════════════════════════════════════════════════════════════════

    def _enrich(self, question_lower: str, matches: list[RetrievedRecord]) -> list[RetrievedRecord]:
        """Add the summary document and/or primary-item documents the question calls for."""
        records = list(matches)

        is_list_all = self._intent.is_list_all(question_lower)
        has_summary = False
        if is_list_all:
            logger.info("[INTENT] List-all query detected; fetching '%s'.", ALL_AIRCRAFT_SUMMARY_DOC_ID)
            summary = self._fetch_best_effort([ALL_AIRCRAFT_SUMMARY_DOC_ID]).get(ALL_AIRCRAFT_SUMMARY_DOC_ID)
            if summary is not None:
                records.insert(0, summary.model_copy(update={"score": SUMMARY_FETCH_SCORE, "fetched": True}))
                has_summary = True

        item: KnownItem | None = None
        if not has_summary:
            item = self._intent.item_from_matches(question_lower, records)
            if item is not None:
                logger.info("[INTENT] Primary item '%s' identified from semantic matches.", item.name)
        if item is None and not is_list_all:
            item = self._intent.item_from_text(question_lower)
            if item is not None:
                logger.info("[INTENT] Primary item '%s' identified from question keywords.", item.name)

        if item is None:
            return records

        present = {record.id for record in records}
        wanted = [doc_id for doc_id in self._intent.document_ids(item, question_lower) if doc_id not in present]
        if not wanted:
            return records

        fetched = self._fetch_best_effort(wanted)
        for doc_id in wanted:
            record = fetched.get(doc_id)
            if record is None:
                logger.info("[FETCH] '%s' not found for %s.", doc_id, item.name)
                continue
            records.append(record.model_copy(update={"score": ITEM_FETCH_SCORE, "fetched": True}))
        return records


    def _fetch_best_effort(self, ids: list[str]) -> dict[str, RetrievedRecord]:
        """Fetch *ids*; any failure is logged and treated as "nothing found"."""
        try:
            found = self._store.fetch(ids)
        except Exception as exc:
            logger.error("[FETCH] Direct fetch of %s failed: %s", ids, exc)
            return {}
        logger.info("[FETCH] %d/%d document(s) found: %s", len(found), len(ids), ", ".join(found) or "-")
        return found


    @staticmethod
    def merge_records(records: Iterable[RetrievedRecord], limit: int) -> list[RetrievedRecord]:
        """
        Sort by score (descending), keep the first occurrence of every id,
        and cap to *limit* records.
        """
        ordered = sorted(records, key=lambda r: r.sort_score, reverse=True)
        seen: set[str] = set()
        unique: list[RetrievedRecord] = []
        for record in ordered:
            if record.id in seen:
                continue
            seen.add(record.id)
            unique.append(record)
        return unique[:limit]

    # ══════════════════════════════════════════════════════════════════
    #  GENERATION
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def build_messages(context: str, question: str) -> list[Any]:
        """System instruction + user message carrying context and question."""
        from langchain_core.messages import HumanMessage, SystemMessage

        return [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=USER_PROMPT_TEMPLATE.format(context=context, question=question))]


    async def _generate(self, context: str, question: str) -> str:
        response = await self._llm.ainvoke(self.build_messages(context, question))
        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            # Multi-part responses: keep the text parts only
            content = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content if isinstance(part, (str, dict)))
        answer = str(content or "").strip()
        if not answer:
            logger.warning("[RAG] LLM returned an empty completion; using fallback answer.")
            return FALLBACK_ANSWER
        return answer
