"""Parsers for the auxiliary (non-streamed) completions: badges and structured sections."""

import json
import logging
import re

from llm_cards.models import Section

logger = logging.getLogger(__name__)

MAX_BADGES = 3
FALLBACK_SECTION_TITLE = "Overview"

_QUOTES = "\"'`“”‘’"
_FENCE_RE = re.compile(r"```[\w+-]*")


def parse_badges(reply: str, limit: int = MAX_BADGES) -> list[str]:
    """Split a comma-separated reply into at most `limit` unquoted badge labels."""
    badges = []
    for part in reply.split(","):
        badge = part.strip().strip(_QUOTES).strip()
        if badge:
            badges.append(badge)
    return badges[:limit]


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers (```json, ```) and surrounding whitespace."""
    return _FENCE_RE.sub("", text).strip()


def _valid_sections(items: list) -> list[Section]:
    sections = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        content = item.get("content")
        if not isinstance(title, str) or not isinstance(content, str):
            continue
        if title.strip() and content.strip():
            sections.append(Section(title=title.strip(), content=content.strip()))
    return sections


def parse_sections(reply: str) -> list[Section]:
    """Decode a JSON array of {title, content} objects embedded anywhere in `reply`.

    The array is located by the first '[' and the last ']' of the raw reply, so
    fences around the array are skipped and fences inside section content are
    kept. Elements without a non-empty title and content are dropped. When
    nothing valid survives, the whole reply (code fences stripped) becomes a
    single section.
    """
    start = reply.find("[")
    end = reply.rfind("]")

    if start != -1 and end > start:
        try:
            decoded = json.loads(reply[start : end + 1])
        except json.JSONDecodeError as exc:
            logger.warning("Structured expansion is not valid JSON: %s", exc)
        else:
            if isinstance(decoded, list):
                sections = _valid_sections(decoded)
                if sections:
                    return sections
            logger.warning("Structured expansion yielded no valid sections")

    return [Section(title=FALLBACK_SECTION_TITLE, content=strip_code_fences(reply))]
