"""Parameter-binding builder for partial UPDATE statements."""

import re
from typing import Any, Self


_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str) -> str:
    """Validate that a table or column name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER.match(name):
        msg = f"Invalid SQL identifier: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)
    return name


class UpdateBuilder:
    """Accumulates ``column = ?`` assignments and renders one UPDATE statement.

    Values are always bound as parameters; only validated identifiers and
    caller-supplied SQL expressions (see ``touch``) reach the statement text.
    Touched columns are rendered after all bound assignments.

    Usage:
        builder = UpdateBuilder("tasks")
        builder.set("title", "New title").touch("updated_at", "CURRENT_TIMESTAMP")
        query, params = builder.build(where_column="id", where_value=7)
    """

    def __init__(self, table: str) -> None:
        self._table = _validate_identifier(table)
        self._assignments: list[tuple[str, Any]] = []
        self._expressions: list[tuple[str, str]] = []

    def set(self, column: str, value: Any) -> Self:
        """Bind ``value`` to ``column``. A column may only be set once."""
        _validate_identifier(column)
        if column in self.columns:
            msg = f"Column already assigned: {column}"
            raise ValueError(msg)
        self._assignments.append((column, value))
        return self

    def set_many(self, values: dict[str, Any]) -> Self:
        for column, value in values.items():
            self.set(column, value)
        return self

    def touch(self, column: str, expression: str) -> Self:
        """Assign a trusted SQL expression (e.g. a timestamp function) to ``column``."""
        _validate_identifier(column)
        if column in self.columns:
            msg = f"Column already assigned: {column}"
            raise ValueError(msg)
        self._expressions.append((column, expression))
        return self

    @property
    def columns(self) -> list[str]:
        """Columns in the order they will appear in the SET clause."""
        return [column for column, _ in self._assignments] + [column for column, _ in self._expressions]

    @property
    def has_assignments(self) -> bool:
        return bool(self._assignments or self._expressions)

    def build(self, *, where_column: str, where_value: Any) -> tuple[str, list[Any]]:
        """Render the statement and its parameter list.

        Raises:
            ValueError: If nothing has been assigned
        """
        if not self.has_assignments:
            msg = "Empty update payload"
            raise ValueError(msg)

        clauses = [f"{column} = ?" for column, _ in self._assignments]
        clauses.extend(f"{column} = {expression}" for column, expression in self._expressions)
        params = [value for _, value in self._assignments]
        params.append(where_value)

        query = f"UPDATE {self._table} SET {', '.join(clauses)} WHERE {_validate_identifier(where_column)} = ?"  # noqa: S608 - identifiers are validated
        return query, params
