import re
from typing import Iterable, List, Sequence, Tuple

from . import config

WORD_RE = re.compile(r"(\w+)$")


def current_word(text: str, cursor: int = None) -> str:
    """Trailing ``\\w+`` token before the cursor (end of text by default)."""
    before = text if cursor is None else text[:cursor]
    m = WORD_RE.search(before)
    return m.group(1) if m else ""


def suggest(word: str, columns: Iterable[str] = (), keywords: Sequence[str] = config.SQL_KEYWORDS,
            limit: int = config.MAX_SUGGESTIONS) -> List[str]:
    """Keyword prefix matches first, then column prefix matches, both case-insensitive."""
    if not word:
        return []
    upper, lower = word.upper(), word.lower()
    out = [kw for kw in keywords if kw.startswith(upper)]
    out.extend(col for col in columns if col.lower().startswith(lower))
    return out[:limit]


def suggest_at(text: str, cursor: int = None, columns: Iterable[str] = ()) -> List[str]:
    word = current_word(text, cursor)
    if len(word) < config.MIN_SUGGEST_CHARS:
        return []
    return suggest(word, columns)


def apply_suggestion(text: str, cursor: int, suggestion: str) -> Tuple[str, int]:
    """Swap the partial word at ``cursor`` for ``suggestion``; returns (text, new cursor)."""
    if cursor is None:
        cursor = len(text)
    before, after = text[:cursor], text[cursor:]
    word = current_word(before)
    head = before[: len(before) - len(word)] + suggestion + " "
    return head + after, len(head)
