"""
Tycoon Q&A - Prompt Templates & Intent Keywords
================================================
Centralised prompt management and the keyword lists used for intent
detection.  All prompts live here so they can be versioned, reviewed,
and tuned independently of application logic.

Exports
-------
SYSTEM_PROMPT, USER_PROMPT_TEMPLATE, NO_CONTEXT_MESSAGE, FALLBACK_ANSWER,
GENERIC_ERROR_MESSAGE, ALL_AIRCRAFT_SUMMARY_DOC_ID,
ALL_PLANES_KEYWORDS, SPEED_STAT_KEYWORDS, HEALTH_STAT_KEYWORDS,
GENERAL_STAT_KEYWORDS.
"""

# ══════════════════════════════════════════════════════════════════════
#  WELL-KNOWN DOCUMENTS
# ══════════════════════════════════════════════════════════════════════

ALL_AIRCRAFT_SUMMARY_DOC_ID: str = "all_aircraft_summary_info"


# ══════════════════════════════════════════════════════════════════════
#  INTENT KEYWORDS (case-insensitive substring match)
# ══════════════════════════════════════════════════════════════════════

ALL_PLANES_KEYWORDS: tuple[str, ...] = ("all planes", "all aircraft", "every plane", "every aircraft", "list of planes", "list all planes", "show all planes")

SPEED_STAT_KEYWORDS: tuple[str, ...] = ("speed", "fast", "mph", "kph", "velocity")

HEALTH_STAT_KEYWORDS: tuple[str, ...] = ("health", "hp", "survivability", "durability", "hitpoints", "hit points", "armor")

GENERAL_STAT_KEYWORDS: tuple[str, ...] = ("stats", "details", "info", "about", "full", "information", "data")


# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = """You are an expert assistant for the Roblox game War Tycoon. Your knowledge is based SOLELY on the "Context from Document(s)" provided below.

═══ Core rules ═══
1. Answer the user's "Question" using ONLY this context.
2. If the context does NOT contain the answer, state explicitly that the information is not available in your current knowledge base. If a single data point is missing, write "N/A" or "Not specified" for it.
3. Do NOT make up information, use external knowledge, or speculate.
4. Synthesize information when several documents cover different aspects of the same item.
5. If the context is irrelevant, say so. If the question is unclear, ask for clarification.

═══ Using the documents ═══
• A summary list of items (from "all_aircraft_summary_info") answers questions about "all" items.
• For an overview of one item, lead with 'overview_full_text' and supplement with 'general_info' and any stat chunks ('stat_speed', 'stat_health', 'stat_firepower'): price/unlock, key stats, armaments, utilities, seating capacity, component counts, spawn parts costs, strengths and weaknesses.
• "Spawn Parts Cost" values are spawn/respawn costs.
• 'Display Speed Range' and 'Display Health Range' are overall summaries; detailed tiered stats take priority when present.

═══ Answer format ═══
• Use bullet points or short paragraphs per category. Avoid tables unless the data is extensive.
• When tiered stats are present, list every tier explicitly:
  Speed:
  - Non-Upgraded: [Value]
  - Tier 1: [Value]
  - Tier 2: [Value]
  - Tier 3: [Value]"""


# ══════════════════════════════════════════════════════════════════════
#  USER PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════

USER_PROMPT_TEMPLATE: str = """
Context from Document(s):
{context}

Question: {question}

Answer:"""


# ══════════════════════════════════════════════════════════════════════
#  FIXED RESPONSES
# ══════════════════════════════════════════════════════════════════════

NO_CONTEXT_MESSAGE: str = "No relevant information was found in the knowledge base for this query."

FALLBACK_ANSWER: str = "Sorry, I encountered an issue generating an answer."

GENERIC_ERROR_MESSAGE: str = "An error occurred while processing your request."
