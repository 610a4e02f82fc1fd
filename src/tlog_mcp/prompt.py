"""Pull ``id:`` and ``title:`` out of a free-text agent instruction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from tlog_core.domain import today_string
from tlog_core.naming import slugify_title

_ID_RE = re.compile(r"\bid\s*[:=]\s*([A-Za-z0-9_-]+)", re.IGNORECASE)
_TITLE_RE = re.compile(r"\btitle\s*[:=]\s*([^\n;]+)", re.IGNORECASE)
_SENTENCE_END = re.compile(r"[\n。.!?]")


@dataclass
class PromptMetadata:
    id: str
    title: str
    warnings: list[str] = field(default_factory=list)


def extract_prompt_metadata(instruction: str, prefix: str) -> PromptMetadata:
    """Extract id and title, inferring whichever is missing.

    A missing id is derived from the title slug. A missing title falls back
    to the explicit id, then to the instruction's first sentence.
    """
    warnings: list[str] = []
    id_match = _ID_RE.search(instruction)
    title_match = _TITLE_RE.search(instruction)
    entity_id = id_match.group(1).strip() if id_match else ""
    title = title_match.group(1).strip() if title_match else ""

    if not title and entity_id:
        title = entity_id
        warnings.append("title was inferred from id")
    elif not title:
        first = _SENTENCE_END.split(instruction.strip(), maxsplit=1)[0].strip()
        title = first[:64] if first else f"{prefix} generated {today_string()}"
        warnings.append("title was inferred from instruction")

    if not entity_id:
        entity_id = f"{prefix}-{slugify_title(title)}"
        warnings.append("id was inferred from title")

    return PromptMetadata(id=entity_id, title=title, warnings=warnings)
