"""Document skill detection.

Queries that ask for a document (slides, spreadsheets, PDFs...) are never
executed locally, but the router tags the unhandled result with the skill so
the LLM fallback can load the right instructions.
"""

from __future__ import annotations

SKILL_INTENT_MAP: dict[str, str] = {
    "document-creation-pptx": "pptx",
    "document-creation-docx": "docx",
    "document-creation-pdf": "pdf",
    "document-creation-xlsx": "xlsx",
}

SKILL_KEYWORDS: dict[str, list[str]] = {
    "pptx": ["pptx", "presentation", "slide deck", "slides", "deck", "pitch deck"],
    "docx": ["docx", "word document", "word doc", "document"],
    "pdf": ["pdf", "pdf report"],
    "xlsx": ["xlsx", "spreadsheet", "excel sheet", "excel spreadsheet", "excel file"],
}

SKILL_EXTENSIONS: dict[str, list[str]] = {
    "pptx": [".pptx"],
    "docx": [".docx"],
    "pdf": [".pdf"],
    "xlsx": [".xlsx"],
}


def get_skill_id_for_intent(intent: str) -> str | None:
    return SKILL_INTENT_MAP.get(intent)


def is_skill_intent(intent: str) -> bool:
    return intent in SKILL_INTENT_MAP


def detect_skill_id(message: str) -> str | None:
    """Detect a document skill from file extensions first, then keywords."""
    normalized = message.lower()

    for skill_id, extensions in SKILL_EXTENSIONS.items():
        if any(ext in normalized for ext in extensions):
            return skill_id

    for skill_id, keywords in SKILL_KEYWORDS.items():
        if any(keyword in normalized for keyword in keywords):
            return skill_id

    return None
