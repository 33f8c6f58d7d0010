"""
Tycoon Q&A - Known Item Catalog
================================
Static registry of the game items the chatbot can resolve by name when
semantic search alone does not surface them.

Each ``KnownItem`` owns the document ids that belong to it.  Ids follow
the ingestion convention ``<slug>_<suffix>`` (see ``slugify_item_name``);
an item may pin ``doc_prefix`` explicitly when its documents were
ingested under a different prefix.

Registering a new item means appending to ``KNOWN_ITEMS``.  The catalog
is validated at import so a duplicate alias or a colliding slug fails
fast instead of silently resolving to the wrong item.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from tycoon.src.utils.text_utils import slugify_item_name

# ── Per-item document suffixes ─────────────────────────────────────────
OVERVIEW_FULL_TEXT_SUFFIX = "overview_full_text"
GENERAL_INFO_SUFFIX = "general_info"
STAT_SPEED_SUFFIX = "stat_speed"
STAT_HEALTH_SUFFIX = "stat_health"


class KnownItem(BaseModel):
    """A catalog entry: canonical name, lower-case aliases and entity type."""

    model_config = ConfigDict(frozen=True)

    name: str
    aliases: tuple[str, ...] = ()
    entity_type: str = "aircraft"
    doc_prefix: str | None = Field(default=None, description="Overrides the slug derived from ``name``.")

    @property
    def slug(self) -> str:
        return self.doc_prefix or slugify_item_name(self.name)

    @property
    def keywords(self) -> tuple[str, ...]:
        """Name and aliases, lower-cased, for substring matching."""
        return (self.name.lower(), *(alias.lower() for alias in self.aliases))

    def document_id(self, suffix: str) -> str:
        return f"{self.slug}_{suffix}"

    def mentioned_in(self, text_lower: str) -> bool:
        return any(keyword in text_lower for keyword in self.keywords)


KNOWN_ITEMS: tuple[KnownItem, ...] = (
    KnownItem(name="P-51 Mustang", aliases=("p-51", "mustang", "p51")),
    KnownItem(name="MiG-29 Fulcrum", aliases=("mig-29", "fulcrum", "mig29")),
    KnownItem(name="Spitfire", aliases=("spitfire", "spit")),
)


def validate_catalog(items: tuple[KnownItem, ...]) -> None:
    """
    Reject catalogs with ambiguous entries.

    Raises
    ------
    ValueError
        If two items share a name, an alias, or a document slug.
    """
    owners: dict[str, str] = {}
    slugs: dict[str, str] = {}
    for item in items:
        for keyword in set(item.keywords):
            if keyword in owners and owners[keyword] != item.name:
                raise ValueError(f"Catalog keyword '{keyword}' is claimed by both '{owners[keyword]}' and '{item.name}'.")
            owners[keyword] = item.name
        if item.slug in slugs:
            raise ValueError(f"Catalog slug '{item.slug}' is shared by '{slugs[item.slug]}' and '{item.name}'.")
        slugs[item.slug] = item.name


def find_by_name(name: str, items: tuple[KnownItem, ...] = KNOWN_ITEMS) -> KnownItem | None:
    """Case-insensitive lookup by canonical name."""
    wanted = name.lower()
    for item in items:
        if item.name.lower() == wanted:
            return item
    return None


validate_catalog(KNOWN_ITEMS)
