"""
Tycoon Q&A - Context Formatter
===============================
Turns a ranked list of ``RetrievedRecord`` objects into the plain-text
context block handed to the LLM.

Every record renders as::

    --- Context Chunk 1 (ID: spitfire_stat_speed, Score: 0.9900 (Directly Fetched)) ---
    Item Name: Spitfire
    Entity Type: aircraft
    Info Type: stat_speed
    <detail block chosen by the record's variant>
    Full Text Context:
    <raw chunk text>
    ---

Missing fields render as ``N/A`` (text) or ``[TBA]`` (stat values and
display ranges), never as an empty string, so the model cannot read
meaning into an absent line.

The module is pure: no I/O, no state, same input → same output.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from tycoon.config.prompt_templates import NO_CONTEXT_MESSAGE
from tycoon.src.core.records import AircraftSummary, ArmamentDescription, CategoryMembership, FirepowerStats, GeneralInfo, HealthStats, History, OverviewConcise, RecordDetails, RetrievedRecord, SpeedStats, UnknownDetails, _TieredStats, parse_details

NA = "N/A"
TBA = "[TBA]"
NO_SOURCE_TEXT = "No source text available for this chunk."


# ── Value helpers ──────────────────────────────────────────────────────

def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not any(not _is_absent(v) for v in value)
    return False


def _show(value: Any, placeholder: str = NA, sep: str = ", ") -> str:
    """Render a scalar or list, substituting *placeholder* when absent."""
    if _is_absent(value):
        return placeholder
    if isinstance(value, (list, tuple)):
        return sep.join(str(v).strip() for v in value if not _is_absent(v))
    return str(value).strip()


def _price_or_unlock(price: Any, currency: Any, unlock_method: Any) -> str:
    if not _is_absent(price) and str(price).strip() != NA:
        return f"{_show(currency, '')}{_show(price)}"
    return _show(unlock_method)


# ── Detail renderers (one per variant) ─────────────────────────────────

def _render_general_info(d: GeneralInfo) -> list[str]:
    return [
        f"Price/Unlock: {_price_or_unlock(d.price, d.currency, d.unlock_method)}",
        f"Unlock Details: {_show(d.unlock_details)}",
        f"Seating Capacity: {_show(d.seating_capacity)}",
        f"Armaments Summary: {_show(d.armament_summary)}",
        f"Utilities: {_show(d.utility)}",
        f"Component Counts: Hulls: {_show(d.hulls_component_count)}, Engines: {_show(d.engines_component_count)}",
        f"Spawn Parts Cost: Hulls: {_show(d.parts_cost_hulls)}, Weapon Systems: {_show(d.parts_cost_weapon_systems)}, Engines: {_show(d.parts_cost_engines)}",
        f"Display Speed Range: {_show(d.speed_min_display, TBA)} - {_show(d.speed_max_display, TBA)} MPH",
        f"Display Health Range: {_show(d.health_min_display, TBA)} - {_show(d.health_max_display, TBA)} HP",
    ]


def _render_tiers(d: _TieredStats) -> list[str]:
    lines = [f"{d.title} (Unit: {_show(d.unit)}):"]
    for tier in d.tiers:
        lines.append(f"  {tier.label}: {_show(tier.display)} (Value: {_show(tier.value, TBA)})")
    return lines


def _render_firepower(d: FirepowerStats) -> list[str]:
    return [f"Weapon: {_show(d.weapon_name)}", *_render_tiers(d)]


def _render_armament(d: ArmamentDescription) -> list[str]:
    return [
        f"Described Weapon: {_show(d.weapon_name)} (Count: {_show(d.count)}, Type: {_show(d.weapon_type_general)})",
        f"  Characteristics: {_show(d.characteristics)}",
        f"  Notes: {_show(d.notes)}",
    ]


def _render_history(d: History) -> list[str]:
    return [
        f"Section: {_show(d.section_title, 'History')}",
        f"  Key Periods: {_show(d.key_periods)}",
    ]


def _render_overview(d: OverviewConcise) -> list[str]:
    return [
        f"Role: {_show(d.role)}",
        f"  Strengths: {_show(d.strengths, sep='; ')}",
        f"  Weaknesses: {_show(d.weaknesses, sep='; ')}",
        f"  Utilities: {_show(d.utility_summary_for_concise)}",
    ]


def _render_category(d: CategoryMembership) -> list[str]:
    return [f"Category: {_show(d.aircraft_category)}"]


def _render_summary(d: AircraftSummary) -> list[str]:
    lines = ["Summary of All Aircraft:"]
    for plane in d.planes_summary:
        price = _show(plane.price)
        if not _is_absent(plane.unlock_method):
            price = f"{price} ({_show(plane.unlock_method)})"
        lines.extend([
            f"  - Name: {_show(plane.name)}",
            f"    Price/Unlock: {price}",
            f"    Seating: {_show(plane.seating_capacity)}",
            f"    Armaments: {_show(plane.armament_summary)}",
            f"    Speed: {_show(plane.speed_range, TBA)}",
            f"    Health: {_show(plane.health_range, TBA)}",
        ])
    return lines


def _render_nothing(_: UnknownDetails) -> list[str]:
    return []


_RENDERERS: dict[type, Callable[[Any], list[str]]] = {
    GeneralInfo: _render_general_info,
    SpeedStats: _render_tiers,
    HealthStats: _render_tiers,
    FirepowerStats: _render_firepower,
    ArmamentDescription: _render_armament,
    History: _render_history,
    OverviewConcise: _render_overview,
    CategoryMembership: _render_category,
    AircraftSummary: _render_summary,
    UnknownDetails: _render_nothing,
}


# ── Public API ─────────────────────────────────────────────────────────

def render_details(details: RecordDetails) -> list[str]:
    """Detail lines for one parsed variant (empty for ``UnknownDetails``)."""
    return _RENDERERS.get(type(details), _render_nothing)(details)


def format_score(record: RetrievedRecord) -> str:
    if record.score is None:
        return f"{NA} (Directly Fetched)"
    score = f"{record.score:.4f}"
    return f"{score} (Directly Fetched)" if record.fetched else score


def format_record(record: RetrievedRecord, position: int) -> str:
    """Render one record as a numbered context chunk."""
    header = [
        f"Item Name: {record.meta_str('item_name') or 'Unknown Item'}",
        f"Entity Type: {record.meta_str('entity_type') or 'Unknown'}",
        f"Info Type: {record.meta_str('info_type') or 'General'}",
    ]
    details = render_details(parse_details(record))
    body = "\n".join(header + details)
    source_text = record.meta_str("text_content_source") or NO_SOURCE_TEXT
    return f"--- Context Chunk {position} (ID: {record.id or NA}, Score: {format_score(record)}) ---\n{body}\nFull Text Context:\n{source_text}\n---"


def format_context(records: Sequence[RetrievedRecord]) -> str:
    """Render *records* in order, one chunk per record, blank-line separated."""
    if not records:
        return NO_CONTEXT_MESSAGE
    return "\n\n".join(format_record(record, i) for i, record in enumerate(records, 1))
