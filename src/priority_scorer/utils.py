"""Small numeric and path helpers shared by the scoring phases."""

import math
import re
from decimal import ROUND_FLOOR, Decimal
from functools import lru_cache
from typing import Optional, TypeVar

T = TypeVar("T")

# Float noise tolerated before flooring (3.2 + 1.8 + 1.2 + 0.5 must stay 6.7)
_FLOAT_NOISE_DIGITS = 9


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def floor_to_digits(value: float, digits: int = 2) -> float:
    """Round down to a fixed number of decimal digits.

    Rounding down keeps a score from crossing a priority threshold
    because of rounding up.
    """
    if math.isnan(value) or math.isinf(value):
        return value
    cleaned = Decimal(repr(round(value, _FLOAT_NOISE_DIGITS)))
    quantum = Decimal(1).scaleb(-digits)
    return float(cleaned.quantize(quantum, rounding=ROUND_FLOOR))


def pick(value: Optional[T], default: T) -> T:
    """Return value unless it is absent (None), in which case return default."""
    return default if value is None else value


def target_key(path: str, name: str) -> str:
    """Build the `path#name` key used by overrides, metrics and reports."""
    return f"{path}#{name}"


def normalize_path(path: str) -> str:
    """Normalize separators to forward slashes."""
    return (path or "").replace("\\", "/")


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a path glob into an anchored regex.

    `**` matches across directories, `*` stays within one path segment.
    """
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def match_glob(path: str, pattern: str) -> bool:
    """Match a file path against a glob, with or without its leading `src/`."""
    if not pattern or not path:
        return False
    path = normalize_path(path)
    regex = glob_to_regex(pattern)
    stripped = path[4:] if path.startswith("src/") else path
    return bool(regex.match(stripped) or regex.match(path))


def strip_json_comments(text: str) -> str:
    """Remove `/* */` and `//` comments from a JSONC document.

    Comment markers inside string literals (globs such as `src/**/utils/**`,
    code snippets in AI evidence) are left untouched.
    """
    text = str(text)
    out = []
    i, n = 0, len(text)
    in_string = False

    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
            out.append(" ")
        else:
            out.append(ch)
            i += 1

    return "".join(out)
