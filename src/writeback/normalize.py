"""Per-action arg map normalization, run before contract validation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from writeback.errors import ValidationFailure
from writeback.models import ActionName
from writeback.query import QueryError, canonical_key, normalize_query, validate_query

Normalizer = Callable[[Any], Any]


def normalize_as_structured_query(arg_map: Any) -> dict[str, Any]:
    """Normalize ``arg_map`` as a structured query and check its grammar.

    Grammar violations surface as ValidationFailure before any contract
    runs, so a malformed query never reports a missing field instead.
    """
    try:
        query = normalize_query(arg_map)
        validate_query(query)
    except QueryError as exc:
        raise ValidationFailure(
            exc.message,
            details={"error": exc.message, "path": exc.path},
        ) from exc
    return query


def envelope_database(arg_map: Any) -> Any:
    """Return the out-of-band database id of a ``{"database", "arg"}`` envelope, else None."""
    if isinstance(arg_map, Mapping) and "arg" in arg_map:
        return arg_map.get("database")
    return None


def normalize_bulk_rows(arg_map: Any) -> list[dict[str, Any]]:
    """Normalize a bulk request into a list of structured row queries.

    Accepts a list of row maps, or ``{"database": id, "arg": [...]}`` where
    the database id was supplied out-of-band and is merged into each row.
    A row naming a different database is rejected.
    """
    database = envelope_database(arg_map)
    rows = arg_map.get("arg") if isinstance(arg_map, Mapping) else arg_map
    if not isinstance(rows, list):
        raise ValidationFailure(
            f"Bulk actions expect a list of rows, got {type(rows).__name__}",
            details={"error": "expected a list of rows", "path": "arg"},
        )
    normalized: list[dict[str, Any]] = []
    for i, row in enumerate(rows):
        if database is not None and isinstance(row, Mapping):
            row = {canonical_key(key): value for key, value in row.items()}
            if row.setdefault("database", database) != database:
                raise ValidationFailure(
                    f"Row {i} targets database {row['database']!r}, "
                    f"but the request targets database {database!r}",
                    details={
                        "error": "row database differs from the request database",
                        "path": f"[{i}].database",
                    },
                )
        try:
            normalized.append(normalize_as_structured_query(row))
        except ValidationFailure as exc:
            path = exc.details.get("path", "")
            exc.details["path"] = f"[{i}].{path}" if path else f"[{i}]"
            raise
    return normalized


class NormalizerRegistry:
    """Maps action names to arg map normalizers; the default is identity."""

    def __init__(self, normalizers: dict[str, Normalizer] | None = None) -> None:
        self._normalizers: dict[ActionName, Normalizer] = {}
        for action, fn in (normalizers or {}).items():
            self.register(action, fn)

    def register(self, action: str | ActionName, normalizer: Normalizer) -> None:
        self._normalizers[ActionName.parse(action)] = normalizer

    def normalize(self, action: str | ActionName, arg_map: Any) -> Any:
        normalizer = self._normalizers.get(ActionName.parse(action))
        if normalizer is None:
            return arg_map
        return normalizer(arg_map)


def default_normalizers() -> NormalizerRegistry:
    return NormalizerRegistry(
        {
            "row/create": normalize_as_structured_query,
            "row/update": normalize_as_structured_query,
            "row/delete": normalize_as_structured_query,
            "bulk/delete": normalize_bulk_rows,
        }
    )
