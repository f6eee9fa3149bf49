"""Turn validation failures into the user-facing list returned with 400 responses."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

# Location prefixes FastAPI adds in front of the field path.
_REQUEST_LOCATIONS = frozenset({"body", "query", "path", "header", "cookie"})


def issues_from_pydantic(errors: Iterable[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """Map pydantic/FastAPI error dicts to (field, message) pairs."""
    issues: list[tuple[str, str]] = []
    for err in errors:
        loc: Sequence[Any] = err.get("loc") or ()
        parts = [str(p) for p in loc]
        if parts and parts[0] in _REQUEST_LOCATIONS:
            parts = parts[1:]
        message = str(err.get("msg") or "Invalid value")
        # pydantic prefixes messages raised from validators with "Value error, "
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append((".".join(parts), message))
    return issues


def format_validation_errors(issues: Iterable[tuple[str, str]]) -> list[str]:
    """
    Format (field, message) pairs as "field: message" strings.

    Issues without a field (e.g. a malformed JSON body) keep only the message.
    Order is preserved and exact duplicates are dropped.
    """
    formatted: list[str] = []
    seen: set[str] = set()
    for field, message in issues:
        line = f"{field}: {message}" if field else message
        if line in seen:
            continue
        seen.add(line)
        formatted.append(line)
    return formatted or ["Validation failed"]
