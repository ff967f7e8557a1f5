"""Text helpers shared by parsers and the search engine"""
import re
from typing import Any, Optional

_WS_RE = re.compile(r"\s+")
_INT_RE = re.compile(r"(\d+)")

# Finnish alphabet: å, ä, ö sort after z
_FINNISH_ORDER = {"å": "{", "ä": "|", "ö": "}", "ü": "y", "é": "e", "è": "e"}


def collapse_ws(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def finnish_sort_key(text: Optional[str]) -> str:
    """Case-insensitive sort key placing å, ä, ö after z"""
    folded = (text or "").casefold()
    return "".join(_FINNISH_ORDER.get(ch, ch) for ch in folded)


def parse_number(value: Any) -> Optional[float]:
    """Spreadsheet numbers may arrive as floats or strings with a decimal comma"""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".").replace("\xa0", "").replace(" ", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_int(value: Any) -> Optional[int]:
    number = parse_number(value)
    return int(number) if number is not None else None


def first_int(text: Optional[str], default: int = 0) -> int:
    """First integer in text: "11-15" -> 11"""
    match = _INT_RE.search(text or "")
    return int(match.group(1)) if match else default


def clean_cell(value: Any) -> Optional[str]:
    """Cell as stripped text, None when blank"""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    return text[:limit]
