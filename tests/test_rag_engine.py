"""Tests for the RAG engine, intent detection and record merging."""

import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from tycoon.config.catalog import KNOWN_ITEMS, find_by_name
from tycoon.config.prompt_templates import ALL_AIRCRAFT_SUMMARY_DOC_ID, FALLBACK_ANSWER, NO_CONTEXT_MESSAGE, SYSTEM_PROMPT
from tycoon.src.core.rag_engine import ITEM_FETCH_SCORE, SUMMARY_FETCH_SCORE, EmptyQuestionError, IntentDetector, RAGEngine

SUMMARY_METADATA = {"entity_type": "aircraft", "info_type": "summary", "planes_summary": [{"name": "P-51 Mustang"}, {"name": "Spitfire"}]}


def _spitfire_docs():
    return {
        "spitfire_overview_full_text": {"entity_type": "aircraft", "info_type": "overview_full_text", "item_name": "Spitfire"},
        "spitfire_general_info": {"entity_type": "aircraft", "info_type": "general_info", "item_name": "Spitfire"},
        "spitfire_stat_speed": {"entity_type": "aircraft", "info_type": "stat_speed", "item_name": "Spitfire", "display_speed_non_upgraded": "190 MPH"},
        "spitfire_stat_health": {"entity_type": "aircraft", "info_type": "stat_health", "item_name": "Spitfire"},
    }


# ── Intent detection ──────────────────────────────────────────────────


class TestIntentDetector:

    def test_list_all_keywords(self):
        assert IntentDetector.is_list_all("can you list all planes?")
        assert IntentDetector.is_list_all("show me every aircraft")
        assert not IntentDetector.is_list_all("what is the fastest plane")

    def test_item_from_text_matches_aliases(self):
        detector = IntentDetector()
        assert detector.item_from_text("how good is the mustang").name == "P-51 Mustang"
        assert detector.item_from_text("mig-29 price?").name == "MiG-29 Fulcrum"
        assert detector.item_from_text("which tank is best") is None

    def test_item_from_matches_requires_question_mention(self, record):
        detector = IntentDetector()
        matches = [record("x", 0.8, item_name="Spitfire", entity_type="aircraft")]

        assert detector.item_from_matches("what about the spitfire", matches).name == "Spitfire"
        assert detector.item_from_matches("what is the best fighter", matches) is None

    def test_item_from_matches_skips_records_without_entity_type(self, record):
        detector = IntentDetector()
        matches = [record("x", 0.8, item_name="Spitfire")]

        assert detector.item_from_matches("spitfire speed", matches) is None

    @pytest.mark.parametrize(
        "question, expected_suffixes",
        [
            ("what is the speed of the spitfire?", ["overview_full_text", "general_info", "stat_speed"]),
            ("spitfire durability", ["overview_full_text", "general_info", "stat_health"]),
            ("tell me about the spitfire", ["overview_full_text", "general_info", "stat_speed", "stat_health"]),
            ("spitfire price", ["overview_full_text", "general_info"]),
        ],
    )
    def test_document_ids(self, question, expected_suffixes):
        spitfire = find_by_name("Spitfire")

        assert IntentDetector.document_ids(spitfire, question) == [f"spitfire_{suffix}" for suffix in expected_suffixes]

    def test_catalog_document_ids_use_slugs(self):
        assert [item.document_id("general_info") for item in KNOWN_ITEMS] == ["p_51_mustang_general_info", "mig_29_fulcrum_general_info", "spitfire_general_info"]


# ── Merging ───────────────────────────────────────────────────────────


class TestMergeRecords:

    def test_sorted_descending_with_unknown_scores_last(self, record):
        merged = RAGEngine.merge_records([record("a", 0.5), record("b", None), record("c", 0.99), record("d", 0.9)], 10)

        assert [r.id for r in merged] == ["c", "d", "a", "b"]

    def test_dedupe_keeps_highest_scored_copy(self, record):
        merged = RAGEngine.merge_records([record("a", 0.4), record("a", 0.99), record("b", 0.5)], 10)

        assert [(r.id, r.score) for r in merged] == [("a", 0.99), ("b", 0.5)]

    def test_cap(self, record):
        merged = RAGEngine.merge_records([record(f"r{i}", i / 100) for i in range(15)], 10)

        assert len(merged) == 10
        assert merged[0].id == "r14"


# ── Pipeline ──────────────────────────────────────────────────────────


class TestAnswer:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   ", "\n\t"])
    async def test_blank_question_makes_no_upstream_call(self, make_engine, embedder, question):
        engine, store, llm = make_engine()

        with pytest.raises(EmptyQuestionError):
            await engine.answer(question)

        assert embedder.query_calls == []
        assert store.query_calls == []
        assert store.fetch_calls == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_single_embedding_and_single_query(self, make_engine, embedder, test_settings):
        engine, store, llm = make_engine()

        await engine.answer("Which plane is the cheapest?")

        assert embedder.query_calls == ["Which plane is the cheapest?"]
        assert len(store.query_calls) == 1
        assert store.query_calls[0][1] == test_settings.SEARCH_TOP_K
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_answer_is_trimmed_completion(self, make_engine):
        engine, _, _ = make_engine(reply="  The P-51 costs $250,000.  \n")

        assert await engine.answer("p-51 price") == "The P-51 costs $250,000."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "   \n"])
    async def test_empty_completion_returns_fallback(self, make_engine, reply):
        engine, _, _ = make_engine(reply=reply)

        assert await engine.answer("anything?") == FALLBACK_ANSWER

    @pytest.mark.asyncio
    async def test_llm_error_propagates(self, make_engine):
        engine, _, _ = make_engine(llm_error=RuntimeError("quota exceeded"))

        with pytest.raises(RuntimeError, match="quota exceeded"):
            await engine.answer("anything?")

    @pytest.mark.asyncio
    async def test_no_matches_sends_no_context_message(self, make_engine):
        engine, store, llm = make_engine()

        result = await engine.answer_with_context("which boat is fastest?")

        assert result.records == []
        assert result.context == NO_CONTEXT_MESSAGE
        assert store.fetch_calls == []
        assert NO_CONTEXT_MESSAGE in llm.calls[0][1].content

    @pytest.mark.asyncio
    async def test_prompt_carries_system_instruction_context_and_question(self, make_engine, record):
        engine, _, llm = make_engine(matches=[record("tank_doc", 0.7, item_name="Tank", text_content_source="Tank text.")])

        await engine.answer("Which tank is best?")

        system, human = llm.calls[0]
        assert isinstance(system, SystemMessage) and system.content == SYSTEM_PROMPT
        assert isinstance(human, HumanMessage)
        assert "--- Context Chunk 1 (ID: tank_doc, Score: 0.7000) ---" in human.content
        assert "Question: Which tank is best?" in human.content

    @pytest.mark.asyncio
    async def test_semantic_and_fetched_records_are_ordered_by_score(self, make_engine, record):
        matches = [record("p_51_mustang_history", 0.9, entity_type="aircraft", item_name="P-51 Mustang"), record("misc_doc", 0.5, item_name="Misc")]
        documents = {"p_51_mustang_general_info": {"entity_type": "aircraft", "info_type": "general_info", "item_name": "P-51 Mustang"}}
        engine, store, _ = make_engine(matches=matches, documents=documents)

        result = await engine.answer_with_context("What does the P-51 cost?")

        assert [(r.id, r.score) for r in result.records] == [("p_51_mustang_general_info", ITEM_FETCH_SCORE), ("p_51_mustang_history", 0.9), ("misc_doc", 0.5)]
        assert store.fetch_calls == [["p_51_mustang_overview_full_text", "p_51_mustang_general_info"]]
        assert "Score: 0.9900 (Directly Fetched)" in result.context

    @pytest.mark.asyncio
    async def test_duplicate_ids_appear_once(self, make_engine, record):
        matches = [record("spitfire_general_info", 0.42, entity_type="aircraft", info_type="general_info", item_name="Spitfire")]
        engine, store, _ = make_engine(matches=matches, documents=_spitfire_docs())

        result = await engine.answer_with_context("spitfire price")

        ids = [r.id for r in result.records]
        assert ids.count("spitfire_general_info") == 1
        # Already present from semantic search, so not fetched again
        assert store.fetch_calls == [["spitfire_overview_full_text"]]

    @pytest.mark.asyncio
    async def test_list_all_puts_summary_first(self, make_engine, record):
        matches = [record("spitfire_history", 0.8, entity_type="aircraft", item_name="Spitfire")]
        engine, store, _ = make_engine(matches=matches, documents={ALL_AIRCRAFT_SUMMARY_DOC_ID: SUMMARY_METADATA})

        result = await engine.answer_with_context("list all planes")

        assert result.records[0].id == ALL_AIRCRAFT_SUMMARY_DOC_ID
        assert result.records[0].score == SUMMARY_FETCH_SCORE
        assert store.fetch_calls == [[ALL_AIRCRAFT_SUMMARY_DOC_ID]]
        assert result.context.startswith(f"--- Context Chunk 1 (ID: {ALL_AIRCRAFT_SUMMARY_DOC_ID}, Score: 1.0000 (Directly Fetched)) ---")
        assert "Summary of All Aircraft:" in result.context

    @pytest.mark.asyncio
    async def test_list_all_without_summary_skips_keyword_scan(self, make_engine):
        engine, store, _ = make_engine(documents=_spitfire_docs())

        result = await engine.answer_with_context("show all planes like the spitfire")

        assert store.fetch_calls == [[ALL_AIRCRAFT_SUMMARY_DOC_ID]]
        assert result.records == []

    @pytest.mark.asyncio
    async def test_spitfire_speed_fetches_speed_but_not_health(self, make_engine):
        engine, store, _ = make_engine(documents=_spitfire_docs())

        result = await engine.answer_with_context("What is the speed of the Spitfire?")

        ids = [r.id for r in result.records]
        assert "spitfire_stat_speed" in ids
        assert "spitfire_stat_health" not in ids
        assert store.fetch_calls == [["spitfire_overview_full_text", "spitfire_general_info", "spitfire_stat_speed"]]
        assert all(r.score == ITEM_FETCH_SCORE and r.fetched for r in result.records)

    @pytest.mark.asyncio
    async def test_missing_documents_are_skipped(self, make_engine):
        engine, _, _ = make_engine(documents={"spitfire_general_info": _spitfire_docs()["spitfire_general_info"]})

        result = await engine.answer_with_context("spitfire speed")

        assert [r.id for r in result.records] == ["spitfire_general_info"]

    @pytest.mark.asyncio
    async def test_fetch_failure_is_not_fatal(self, make_engine, record):
        matches = [record("spitfire_history", 0.8, entity_type="aircraft", item_name="Spitfire")]
        engine, store, llm = make_engine(matches=matches, fetch_error=ConnectionError("index unavailable"), reply="Partial answer.")

        result = await engine.answer_with_context("What is the speed of the Spitfire?")

        assert result.answer == "Partial answer."
        assert [r.id for r in result.records] == ["spitfire_history"]
        assert len(store.fetch_calls) == 1
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_context_is_capped(self, make_engine, record, test_settings):
        matches = [record(f"doc_{i}", 0.5 + i / 100) for i in range(12)]
        settings = test_settings.model_copy(update={"SEARCH_TOP_K": 12, "CONTEXT_MAX_RECORDS": 10})
        engine, _, _ = make_engine(matches=matches, settings=settings)

        result = await engine.answer_with_context("tell me something")

        assert len(result.records) == 10
        assert "--- Context Chunk 10 " in result.context
        assert "--- Context Chunk 11 " not in result.context

    @pytest.mark.asyncio
    async def test_multipart_completion_is_joined(self, fake_llm_cls, embedder, fake_store_cls, test_settings):
        llm = fake_llm_cls(reply=[{"type": "text", "text": "Part one. "}, "Part two."])
        engine = RAGEngine(fake_store_cls(), embedder, llm=llm, settings=test_settings)

        assert await engine.answer("anything?") == "Part one. Part two."
