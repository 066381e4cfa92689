"""
Partial-update statement builder.

Updatable columns are declared once as a typed field list; a request's
changes are folded over that list in declaration order, so placeholder
numbering is deterministic. Values are always bound as parameters; only
identifiers from the declared list ever reach the SQL text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from core.errors import NoOpUpdate, ValidationError


@dataclass(frozen=True)
class UpdatableField:
    name: str
    column: str
    cast: str | None = None

    def placeholder(self, index: int) -> str:
        if self.cast:
            return f"${index}::{self.cast}"
        return f"${index}"


@dataclass(frozen=True)
class BoundStatement:
    sql: str
    args: tuple[Any, ...]


ENTRY_UPDATABLE_FIELDS: tuple[UpdatableField, ...] = (
    UpdatableField("title", "title"),
    UpdatableField("content", "content"),
    UpdatableField("mediaUrls", "media_urls", cast="jsonb"),
    UpdatableField("audioUrl", "audio_url"),
)


def present_fields(
    fields: Sequence[UpdatableField],
    changes: Mapping[str, Any],
) -> list[tuple[UpdatableField, Any]]:
    known = {f.name for f in fields}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ValidationError(f"Field(s) not updatable: {', '.join(unknown)}.")
    return [(f, changes[f.name]) for f in fields if f.name in changes]


def build_partial_update(
    table: str,
    fields: Sequence[UpdatableField],
    changes: Mapping[str, Any],
    *,
    where: Sequence[tuple[str, Any]],
    returning: Sequence[str],
) -> BoundStatement:
    """
    Build `UPDATE <table> SET ... WHERE ... RETURNING ...`.

    `changes` maps field names to new values; a key being present is what
    marks a field for update (a None value is written as NULL). `where` is
    a list of (column, value) pairs joined with AND.
    """
    assignments = present_fields(fields, changes)
    if not assignments:
        raise NoOpUpdate()
    if not where:
        raise ValueError("Refusing to build an UPDATE without a WHERE clause.")

    args: list[Any] = []
    set_parts: list[str] = []
    for field, value in assignments:
        args.append(value)
        set_parts.append(f"{field.column} = {field.placeholder(len(args))}")

    where_parts: list[str] = []
    for column, value in where:
        args.append(value)
        where_parts.append(f"{column} = ${len(args)}")

    sql = (
        f"UPDATE {table}\n"
        f"SET {', '.join(set_parts)}\n"
        f"WHERE {' AND '.join(where_parts)}\n"
        f"RETURNING {', '.join(returning)}"
    )
    return BoundStatement(sql=sql, args=tuple(args))
