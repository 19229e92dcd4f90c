from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Mapping, Union

CellValue = Union[str, int, float, bool, None]
DataRow = Mapping[str, CellValue]

_TAG_RE = re.compile(r"<[^>]*>")
_NBSP = "&nbsp;"

_DATE_VALUE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}|^\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}T")
_DATE_KEY_WORD_RE = re.compile(
    r"(?:^|[_\s-])(?:date|time|day|month|year|timestamp|period)s?(?:$|[_\s-])|_at$",
    re.IGNORECASE,
)
_DATE_KEY_CAMEL_RE = re.compile(r"[a-z](?:Date|Time|Day|Month|Year|At)$")

_CAMEL_RE = re.compile(r"([A-Z])")
_SEP_RE = re.compile(r"[_-]")
_WORD_START_RE = re.compile(r"\b\w")


def strip_html(html: str) -> str:
    """Drop markup tags, turn `&nbsp;` into spaces, and trim."""
    return _TAG_RE.sub("", html or "").replace(_NBSP, " ").strip()


def count_words(text: str) -> int:
    return len([w for w in (text or "").split() if w])


def to_number(value: Any) -> float | None:
    """
    Coerce a cell to a finite float, or None.

    Numbers pass through (bools do not count). Strings must parse fully after
    trimming; partial parses such as "12abc" are None, never 12.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        s = value.strip()
        if not s or "_" in s:
            return None
        try:
            number = float(s)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def is_numeric(value: Any) -> bool:
    return to_number(value) is not None


def parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    try:
        return datetime.fromisoformat(s)
    except ValueError:
        pass

    try:
        return datetime.strptime(s, "%m/%d/%Y")
    except ValueError:
        return None


def looks_like_date_value(value: Any) -> bool:
    return isinstance(value, str) and _DATE_VALUE_RE.search(value.strip()) is not None


def looks_like_date_key(key: str) -> bool:
    k = (key or "").strip()
    return _DATE_KEY_WORD_RE.search(k) is not None or _DATE_KEY_CAMEL_RE.search(k) is not None


def format_label(key: str) -> str:
    """`orderDate` / `order_date` / `order-date` -> `Order Date`."""
    spaced = _CAMEL_RE.sub(r" \1", key or "")
    spaced = _SEP_RE.sub(" ", spaced)
    titled = _WORD_START_RE.sub(lambda m: m.group(0).upper(), spaced)
    return " ".join(titled.split())


def label_string(value: Any) -> str:
    """String form used to group categorical values (e.g. pie labels)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
