"""Structured query normalization and grammar validation.

Row actions treat their arg map as a structured query document::

    {"database": 2,
     "type": "query",
     "query": {"source_table": 29, "filter": ["=", ["field", 51, None], 1]},
     "update_row": {"name": "Bob"}}

``normalize_query`` rewrites legacy spellings into that shape and is
idempotent; ``validate_query`` checks the result against the filter grammar.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

QUERY_TYPE = "query"

# Legacy key spellings -> canonical key, applied at the top level and inside "query"
_KEY_ALIASES = {
    "sourcetable": "source_table",
    "createrow": "create_row",
    "updaterow": "update_row",
    "databaseid": "database",
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")

# operator -> (min args, max args); max None means unbounded
_FILTER_ARITY: dict[str, tuple[int, int | None]] = {
    "=": (2, None),
    "!=": (2, None),
    "<": (2, 2),
    "<=": (2, 2),
    ">": (2, 2),
    ">=": (2, 2),
    "between": (3, 3),
    "is_null": (1, 1),
    "not_null": (1, 1),
    "is_empty": (1, 1),
    "not_empty": (1, 1),
    "contains": (2, 3),
    "starts_with": (2, 3),
    "ends_with": (2, 3),
}
_COMPOUND = {"and", "or"}
_STRING_FILTERS = {"contains", "starts_with", "ends_with"}
_SCALARS = (str, int, float, bool, type(None))


class QueryError(ValueError):
    """A structured query violates the query grammar."""

    def __init__(self, message: str, path: str = "") -> None:
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


def canonical_key(key: Any) -> Any:
    """``sourceTable``, ``source-table`` and ``source_table`` all become ``source_table``."""
    if not isinstance(key, str):
        return key
    snake = _CAMEL_RE.sub(r"_\1", key.lstrip(":")).replace("-", "_").lower()
    return _KEY_ALIASES.get(snake.replace("_", ""), snake)


def _canonical_keys(doc: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in doc.items():
        result[canonical_key(key)] = value
    return result


def _operator(token: Any) -> Any:
    if isinstance(token, str):
        token = token.lstrip(":").lower()
        return token if token == "fk->" else token.replace("-", "_")
    return token


def normalize_field_ref(ref: Any) -> Any:
    """Rewrite legacy field references into ``["field", id, options]``."""
    if isinstance(ref, bool):
        return ref
    if isinstance(ref, int):
        return ["field", ref, None]
    if not isinstance(ref, list) or not ref:
        return ref
    op = _operator(ref[0])
    if op == "field_id" and len(ref) == 2:
        return ["field", ref[1], None]
    if op == "field_literal" and len(ref) == 3:
        return ["field", ref[1], {"base_type": ref[2]}]
    if op == "fk->" and len(ref) == 3:
        source = normalize_field_ref(ref[1])
        dest = normalize_field_ref(ref[2])
        if _is_field(source) and _is_field(dest):
            options = dict(dest[2] or {})
            options["source_field"] = source[1]
            return ["field", dest[1], options]
        return ["fk->", source, dest]
    if op == "field":
        if len(ref) == 2:
            return ["field", ref[1], None]
        return ["field", *ref[1:]]
    if op == "expression":
        return ["expression", *ref[1:]]
    return ref


def _is_field(ref: Any) -> bool:
    return isinstance(ref, list) and len(ref) == 3 and ref[0] == "field"


def normalize_filter(clause: Any) -> Any:
    """Normalize one filter clause; returns None for an empty filter."""
    if clause is None or clause == []:
        return None
    if not isinstance(clause, list) or not clause:
        return clause
    op = _operator(clause[0])
    args = clause[1:]
    if op in _COMPOUND:
        subclauses: list[Any] = []
        for sub in args:
            normalized = normalize_filter(sub)
            if normalized is None:
                continue
            # ["and", ["and", a, b], c] -> ["and", a, b, c]
            if isinstance(normalized, list) and normalized and normalized[0] == op:
                subclauses.extend(normalized[1:])
            else:
                subclauses.append(normalized)
        if not subclauses:
            return None
        if len(subclauses) == 1:
            return subclauses[0]
        return [op, *subclauses]
    if op == "not":
        # Empty subclauses are kept as sent; validation rejects them
        subclauses = []
        for sub in args:
            normalized = normalize_filter(sub)
            subclauses.append(sub if normalized is None else normalized)
        return ["not", *subclauses]
    if op in _FILTER_ARITY and args:
        return [op, normalize_field_ref(args[0]), *args[1:]]
    return [op, *args]


def normalize_query(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Canonicalize a structured query document and stamp its type."""
    if not isinstance(doc, Mapping):
        raise QueryError(f"Expected a mapping, got {type(doc).__name__}")
    result = _canonical_keys(doc)
    inner = result.get("query")
    if isinstance(inner, Mapping):
        inner = _canonical_keys(inner)
        if "filter" in inner:
            normalized = normalize_filter(inner["filter"])
            if normalized is None:
                del inner["filter"]
            else:
                inner["filter"] = normalized
        result["query"] = inner
    result["type"] = QUERY_TYPE
    return result


# --- Grammar ---


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _check_field_ref(ref: Any, path: str) -> None:
    if not isinstance(ref, list) or not ref:
        raise QueryError(f"Expected a field reference, got {ref!r}", path)
    if ref[0] == "field":
        if len(ref) != 3:
            raise QueryError("Field reference must be [\"field\", id, options]", path)
        target, options = ref[1], ref[2]
        if not (_is_positive_int(target) or (isinstance(target, str) and target)):
            raise QueryError(f"Invalid field id or name: {target!r}", f"{path}[1]")
        if options is not None and not isinstance(options, dict):
            raise QueryError(f"Field options must be a mapping or null: {options!r}", f"{path}[2]")
        return
    if ref[0] == "expression":
        if len(ref) != 2 or not isinstance(ref[1], str):
            raise QueryError("Expression reference must be [\"expression\", name]", path)
        return
    raise QueryError(f"Unknown field reference type: {ref[0]!r}", f"{path}[0]")


def _check_value(value: Any, path: str) -> None:
    if not isinstance(value, _SCALARS):
        raise QueryError(f"Filter values must be scalars, got {value!r}", path)


def validate_filter(clause: Any, path: str = "query.filter") -> None:
    """Raise QueryError if ``clause`` is not a well-formed filter clause."""
    if not isinstance(clause, list) or not clause:
        raise QueryError(f"Filter clause must be a non-empty list, got {clause!r}", path)
    op = clause[0]
    args = clause[1:]
    if op in _COMPOUND:
        if len(args) < 2:
            raise QueryError(f"{op!r} requires at least two subclauses", path)
        for i, sub in enumerate(args, start=1):
            validate_filter(sub, f"{path}[{i}]")
        return
    if op == "not":
        if len(args) != 1:
            raise QueryError("'not' requires exactly one subclause", path)
        validate_filter(args[0], f"{path}[1]")
        return
    if op not in _FILTER_ARITY:
        raise QueryError(f"Unknown filter operator: {op!r}", f"{path}[0]")
    min_args, max_args = _FILTER_ARITY[op]
    if len(args) < min_args or (max_args is not None and len(args) > max_args):
        raise QueryError(f"Wrong number of arguments for {op!r}: {len(args)}", path)
    _check_field_ref(args[0], f"{path}[1]")
    values = args[1:]
    if op in _STRING_FILTERS:
        if not isinstance(values[0], str):
            raise QueryError(f"{op!r} requires a string value", f"{path}[2]")
        if len(values) == 2 and not isinstance(values[1], dict):
            raise QueryError(f"{op!r} options must be a mapping", f"{path}[3]")
        return
    for i, value in enumerate(values, start=2):
        _check_value(value, f"{path}[{i}]")


def validate_query(doc: Mapping[str, Any]) -> None:
    """Raise QueryError if a normalized query document is malformed."""
    if doc.get("type") != QUERY_TYPE:
        raise QueryError(f"Expected type {QUERY_TYPE!r}, got {doc.get('type')!r}", "type")
    if not _is_positive_int(doc.get("database")):
        raise QueryError(
            f"database must be a positive integer, got {doc.get('database')!r}", "database"
        )
    inner = doc.get("query")
    if not isinstance(inner, Mapping):
        raise QueryError(f"query must be a mapping, got {inner!r}", "query")
    if not _is_positive_int(inner.get("source_table")):
        raise QueryError(
            f"source_table must be a positive integer, got {inner.get('source_table')!r}",
            "query.source_table",
        )
    if "filter" in inner:
        validate_filter(inner["filter"])
