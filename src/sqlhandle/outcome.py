"""
What an execution produced, per statement kind.

`Outcome` is a tagged union: DML handles record `RowsAffected`, queries a
`ResultSet` schema, procedure calls a `ProcedureOutcome`.
"""
from dataclasses import dataclass

from sqlhandle.types import Column

__all__ = ['Outcome', 'ProcedureOutcome', 'ResultSet', 'RowsAffected']


@dataclass(frozen=True)
class RowsAffected:
    row_count: int
    generated_key: int = -1


@dataclass(frozen=True)
class ResultSet:
    columns: tuple[Column, ...]


@dataclass(frozen=True)
class ProcedureOutcome:
    has_result_set: bool
    update_count: int
    columns: tuple[Column, ...] | None = None


Outcome = RowsAffected | ResultSet | ProcedureOutcome
