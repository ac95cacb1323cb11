"""Validation contracts for action arg maps.

Every CRUD action requires at least::

    {"database": <id>, "query": {"source_table": <id>}}

``row/update`` and ``row/delete`` must also be scoped by a non-empty
``query.filter``; an unscoped mutation is rejected rather than applied to
every row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, ValidationError, model_validator

from writeback.errors import ValidationFailure
from writeback.models import ActionName

Id = Annotated[int, Field(strict=True, gt=0)]
FilterClause = Annotated[list[Any], Field(min_length=1)]
RowValues = Annotated[dict[str, Any], Field(min_length=1)]


class CommonQuery(BaseModel):
    model_config = ConfigDict(extra="allow")

    source_table: Id


class FilteredQuery(CommonQuery):
    filter: FilterClause


class CrudCommon(BaseModel):
    model_config = ConfigDict(extra="allow")

    database: Id
    query: CommonQuery


class RowCreate(CrudCommon):
    create_row: RowValues


class RowUpdate(CrudCommon):
    query: FilteredQuery
    update_row: RowValues


class RowDelete(CrudCommon):
    query: FilteredQuery


class BulkDelete(RootModel[list[RowDelete]]):
    @model_validator(mode="after")
    def _single_database(self) -> BulkDelete:
        databases = {row.database for row in self.root}
        if len(databases) > 1:
            raise ValueError(f"All rows must target the same database, got {sorted(databases)}")
        return self


def _format_loc(loc: tuple[Any, ...]) -> str:
    text = ""
    for part in loc:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else str(part)
    return text or "<root>"


@dataclass(frozen=True)
class Contract:
    """A named schema an arg map must satisfy. ``model=None`` accepts anything."""

    name: str
    model: type[BaseModel] | None = None

    def validate(self, arg_map: Any) -> None:
        """Raise ValidationFailure listing every violated constraint."""
        if self.model is None:
            return
        try:
            self.model.model_validate(arg_map)
        except ValidationError as exc:
            errors = [
                {"loc": _format_loc(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in exc.errors()
            ]
            explanation = "; ".join(f"{e['loc']}: {e['msg']}" for e in errors)
            raise ValidationFailure(
                f"Invalid Action arg map for {self.name}: {explanation}",
                details={"contract": self.name, "errors": errors},
            ) from None


ANY_CONTRACT = Contract("any")

ROW_CREATE = Contract("actions.args.crud/row.create", RowCreate)
ROW_UPDATE = Contract("actions.args.crud/row.update", RowUpdate)
ROW_DELETE = Contract("actions.args.crud/row.delete", RowDelete)
BULK_DELETE = Contract("actions.args.crud/bulk.delete", BulkDelete)


class ContractResolver:
    """Maps action names to their validation contracts."""

    def __init__(self, contracts: dict[str, Contract] | None = None) -> None:
        self._contracts: dict[ActionName, Contract] = {}
        for action, contract in (contracts or {}).items():
            self.register(action, contract)

    def register(self, action: str | ActionName, contract: Contract) -> None:
        self._contracts[ActionName.parse(action)] = contract

    def spec_for(self, action: str | ActionName) -> Contract:
        """Return the contract for ``action``, or ANY_CONTRACT if none is registered."""
        return self._contracts.get(ActionName.parse(action), ANY_CONTRACT)

    def validate(self, action: str | ActionName, arg_map: Any) -> None:
        self.spec_for(action).validate(arg_map)


def default_contracts() -> ContractResolver:
    return ContractResolver(
        {
            "row/create": ROW_CREATE,
            "row/update": ROW_UPDATE,
            "row/delete": ROW_DELETE,
            "bulk/delete": BULK_DELETE,
        }
    )
