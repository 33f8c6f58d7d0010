"""
Tycoon Q&A - Retrieved Records & Metadata Variants
===================================================
Typed view over what the vector index returns.

``RetrievedRecord``
    One hit: ``id``, similarity ``score`` (``None`` when unknown),
    raw ``metadata`` and whether it was fetched directly by id.

Record details
    Metadata is polymorphic.  ``parse_details`` turns it into one variant
    of a closed union keyed by ``(entity_type, info_type)``; each variant
    carries only the fields its template renders.  An unrecognised tag
    becomes ``UnknownDetails`` so new categories degrade to header + raw
    text instead of failing the request; an odd-shaped field is dropped
    on its own and renders as a placeholder.
"""

from __future__ import annotations

from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tycoon.config.prompt_templates import ALL_AIRCRAFT_SUMMARY_DOC_ID
from tycoon.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
Scalar = Union[str, int, float]
ScalarList = Union[list[Scalar], Scalar]

# (label, display-key suffix, value-key suffix)
STAT_TIERS: tuple[tuple[str, str, str], ...] = (
    ("Non-Upgraded", "non_upgraded", "nu"),
    ("Tier 1", "tier_1", "t1"),
    ("Tier 2", "tier_2", "t2"),
    ("Tier 3", "tier_3", "t3"),
)


class RetrievedRecord(BaseModel):
    """A single vector-index hit or directly fetched document."""

    id: str
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    fetched: bool = False

    @property
    def sort_score(self) -> float:
        return self.score if self.score is not None else 0.0

    def meta_str(self, key: str) -> str | None:
        value = self.metadata.get(key)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


# ══════════════════════════════════════════════════════════════════════
#  DETAIL VARIANTS
# ══════════════════════════════════════════════════════════════════════


def _is_renderable(value: Any) -> bool:
    """A scalar, or a flat list of scalars."""
    if isinstance(value, (str, int, float)):
        return True
    return isinstance(value, (list, tuple)) and all(isinstance(v, (str, int, float)) for v in value)


class _Details(BaseModel):
    """
    Base for every variant.

    Fields whose value is neither a scalar nor a flat list of scalars are
    blanked before validation, so one odd value costs its own line (which
    then renders as a placeholder) and not the whole detail block.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    nested_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _blank_unrenderable(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name in cls.model_fields:
            value = data.get(name)
            if value is None or name in cls.nested_fields or _is_renderable(value):
                continue
            logger.debug("[RECORDS] %s.%s has unrenderable %s value; treating as absent.", cls.__name__, name, type(value).__name__)
            data[name] = None
        return data


class GeneralInfo(_Details):
    price: ScalarList | None = None
    currency: ScalarList | None = None
    unlock_method: ScalarList | None = None
    unlock_details: ScalarList | None = None
    seating_capacity: ScalarList | None = None
    armament_summary: ScalarList | None = None
    utility: ScalarList | None = None
    hulls_component_count: ScalarList | None = None
    engines_component_count: ScalarList | None = None
    parts_cost_hulls: ScalarList | None = None
    parts_cost_weapon_systems: ScalarList | None = None
    parts_cost_engines: ScalarList | None = None
    speed_min_display: ScalarList | None = None
    speed_max_display: ScalarList | None = None
    health_min_display: ScalarList | None = None
    health_max_display: ScalarList | None = None


class StatTier(_Details):
    label: str
    display: ScalarList | None = None
    value: ScalarList | None = None


class _TieredStats(_Details):
    """Four-tier stat block read from ``display_<stat>_<tier>`` / ``<stat>_<t>_val`` keys."""

    stat_key: ClassVar[str] = ""
    title: ClassVar[str] = ""
    nested_fields: ClassVar[frozenset[str]] = frozenset({"tiers"})

    unit: ScalarList | None = None
    tiers: tuple[StatTier, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _collect_tiers(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["tiers"] = tuple(
            {"label": label, "display": data.get(f"display_{cls.stat_key}_{display_suffix}"), "value": data.get(f"{cls.stat_key}_{value_suffix}_val")}
            for label, display_suffix, value_suffix in STAT_TIERS
        )
        return data


class SpeedStats(_TieredStats):
    stat_key: ClassVar[str] = "speed"
    title: ClassVar[str] = "Detailed Speed Stats"


class HealthStats(_TieredStats):
    stat_key: ClassVar[str] = "health"
    title: ClassVar[str] = "Detailed Health Stats"


class FirepowerStats(_TieredStats):
    stat_key: ClassVar[str] = "firepower"
    title: ClassVar[str] = "Detailed Firepower Stats"

    weapon_name: ScalarList | None = None


class ArmamentDescription(_Details):
    weapon_name: ScalarList | None = None
    count: ScalarList | None = None
    weapon_type_general: ScalarList | None = None
    characteristics: ScalarList | None = None
    notes: ScalarList | None = None


class History(_Details):
    section_title: ScalarList | None = None
    key_periods: ScalarList | None = None


class OverviewConcise(_Details):
    role: ScalarList | None = None
    strengths: ScalarList | None = None
    weaknesses: ScalarList | None = None
    utility_summary_for_concise: ScalarList | None = None


class CategoryMembership(_Details):
    aircraft_category: ScalarList | None = None


class PlaneSummary(_Details):
    name: ScalarList | None = None
    price: ScalarList | None = None
    unlock_method: ScalarList | None = None
    seating_capacity: ScalarList | None = None
    armament_summary: ScalarList | None = None
    speed_range: ScalarList | None = None
    health_range: ScalarList | None = None


class AircraftSummary(_Details):
    nested_fields: ClassVar[frozenset[str]] = frozenset({"planes_summary"})

    planes_summary: tuple[PlaneSummary, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _planes_only(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("planes_summary"), list):
            data = {**data, "planes_summary": [p for p in data["planes_summary"] if isinstance(p, dict)]}
        return data


class UnknownDetails(_Details):
    """Fallback variant: no structured detail block."""


RecordDetails = Union[GeneralInfo, SpeedStats, HealthStats, FirepowerStats, ArmamentDescription, History, OverviewConcise, CategoryMembership, AircraftSummary, UnknownDetails]

DETAIL_MODELS: dict[tuple[str, str], type[_Details]] = {
    ("aircraft", "general_info"): GeneralInfo,
    ("aircraft", "stat_speed"): SpeedStats,
    ("aircraft", "stat_health"): HealthStats,
    ("aircraft", "stat_firepower"): FirepowerStats,
    ("aircraft", "armament_description"): ArmamentDescription,
    ("aircraft", "history"): History,
    ("aircraft", "overview_concise"): OverviewConcise,
    ("aircraft", "category_membership"): CategoryMembership,
}


def parse_details(record: RetrievedRecord) -> RecordDetails:
    """
    Select and validate the detail variant for *record*.

    The summary document is recognised by id; everything else by its
    ``(entity_type, info_type)`` tag.  Metadata that fails validation
    falls back to ``UnknownDetails``.
    """
    metadata = record.metadata
    if record.id == ALL_AIRCRAFT_SUMMARY_DOC_ID and isinstance(metadata.get("planes_summary"), list):
        model: type[_Details] = AircraftSummary
    else:
        tag = (str(metadata.get("entity_type", "")), str(metadata.get("info_type", "")))
        model = DETAIL_MODELS.get(tag, UnknownDetails)

    try:
        return model.model_validate(metadata)  # type: ignore[return-value]
    except ValidationError as exc:
        logger.warning("[RECORDS] Metadata for '%s' does not fit %s (%d error(s)); rendering without details.", record.id, model.__name__, exc.error_count())
        return UnknownDetails()
