"""Data normalization utilities for consistent data quality."""

import html
import re
import unicodedata
from typing import Optional

import nh3


# =============================================================================
# Thread body sanitization
# =============================================================================

# Dropped along with their text content, not just the tags
_CONTENT_DROPPING_TAGS = {"script", "style"}
_KEPT_CONTROL_CHARS = {"\n", "\t"}
_HORIZONTAL_WS_RE = re.compile("[ \\t\\f\\v\\u00a0\\u1680\\u2000-\\u200a\\u202f\\u205f\\u3000]+")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def _strip_markup(value: str) -> str:
    """Remove all HTML tags, keeping text; entities decode back to plain text."""
    cleaned = nh3.clean(
        value,
        tags=set(),
        clean_content_tags=_CONTENT_DROPPING_TAGS,
        attributes={},
    )
    return html.unescape(cleaned)


def _strip_invisible(value: str) -> str:
    """Drop control (Cc) characters except newline/tab, and all format (Cf) characters."""
    out = []
    for ch in value:
        category = unicodedata.category(ch)
        if category == "Cc" and ch not in _KEPT_CONTROL_CHARS:
            continue
        if category == "Cf":
            continue
        out.append(ch)
    return "".join(out)


def sanitize_thread_body(raw: Optional[str]) -> str:
    """
    Turn user input into the plain text stored on a thread event.

    - Strip HTML markup (script/style content removed entirely)
    - Remove control and zero-width/format characters (newline and tab kept)
    - Collapse runs of horizontal whitespace, trim each line
    - Collapse 3+ consecutive newlines to a single blank line
    - Trim

    Returns an empty string when nothing printable remains; callers decide
    whether that is an error.
    """
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    # Before parsing (NUL would become U+FFFD) and after entity decoding
    text = _strip_invisible(_strip_markup(_strip_invisible(text)))
    lines = [_HORIZONTAL_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def preview_text(value: Optional[str], max_chars: int) -> str:
    """Single-line preview capped at max_chars (ellipsis counted)."""
    if not value:
        return ""
    collapsed = " ".join(value.split())
    if len(collapsed) <= max_chars:
        return collapsed
    return collapsed[: max(max_chars - 1, 0)].rstrip() + "…"


# =============================================================================
# Identity fields
# =============================================================================

def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    return email.strip().lower()


def mask_email(email: Optional[str]) -> str:
    """Log-safe form of an address: first three characters of the local part."""
    if not email:
        return ""
    local, _, domain = email.partition("@")
    prefix = local[:3] if local else ""
    return f"{prefix}...@{domain}" if domain else f"{prefix}..."


# =============================================================================
# Search
# =============================================================================

def normalize_search_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace in a free-text filter; None when nothing is left."""
    if not value:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally (escape char: backslash)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
