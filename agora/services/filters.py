"""Composable WHERE clauses for the moderator listings.

Optional query parameters (search term, author, report status) each add at
most one predicate. Predicates are SQLAlchemy expressions, so every value
travels as a bound parameter; LIKE wildcards in user input are escaped.
"""

from typing import Optional

from sqlalchemy import ColumnElement, Select, and_, or_

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains(column, term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match with wildcards in ``term`` neutralised."""
    return column.ilike(f"%{escape_like(term)}%", escape=LIKE_ESCAPE)


class FilterBuilder:
    """Ordered list of predicates applied together with AND."""

    def __init__(self) -> None:
        self._predicates: list[ColumnElement[bool]] = []

    def __len__(self) -> int:
        return len(self._predicates)

    def add(self, predicate: ColumnElement[bool]) -> "FilterBuilder":
        self._predicates.append(predicate)
        return self

    def search(self, term: Optional[str], *columns) -> "FilterBuilder":
        """Match ``term`` against any of ``columns``; no-op for an empty term."""
        if term:
            self._predicates.append(or_(*(contains(column, term) for column in columns)))
        return self

    def clause(self) -> Optional[ColumnElement[bool]]:
        if not self._predicates:
            return None
        return and_(*self._predicates)

    def apply(self, stmt: Select) -> Select:
        clause = self.clause()
        if clause is None:
            return stmt
        return stmt.where(clause)
