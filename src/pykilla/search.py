"""Search query language for filtering the process table.

A query is split on whitespace. Each token is one filter::

    [-][column:]phrase

``-`` negates the filter. ``column`` is one of ``any``/``*``, ``name``,
``pid``/``id`` or ``cmd``/``command`` (case-insensitive); without it the
filter looks at every column. A row is shown when it satisfies all filters.

Filters with an unknown column never match anything, so a typo hides rows
instead of showing everything. Filters with an empty phrase match everything.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from pykilla.models import Row


class SearchFilterColumn(Enum):
    """Column a search filter looks at."""

    ANY = "any"
    NAME = "name"
    PID = "pid"
    COMMAND = "command"


_COLUMN_ALIASES = {
    "any": SearchFilterColumn.ANY,
    "*": SearchFilterColumn.ANY,
    "name": SearchFilterColumn.NAME,
    "pid": SearchFilterColumn.PID,
    "id": SearchFilterColumn.PID,
    "cmd": SearchFilterColumn.COMMAND,
    "command": SearchFilterColumn.COMMAND,
}


class UnknownColumnError(ValueError):
    """A filter token named a column that does not exist."""

    def __init__(self, token: str) -> None:
        super().__init__(f"unknown column {token!r}")
        self.token = token


def parse_column(token: str) -> SearchFilterColumn:
    """
    Parse a column name.

    Raises:
        UnknownColumnError: If token is not a known column or alias.
    """
    try:
        return _COLUMN_ALIASES[token.lower()]
    except KeyError:
        raise UnknownColumnError(token) from None


@dataclass(slots=True, frozen=True)
class SearchFilter:
    """One parsed search token. Exactly one of column and error is set."""

    phrase: str
    column: SearchFilterColumn | None = SearchFilterColumn.ANY
    negated: bool = False
    error: UnknownColumnError | None = None

    def matches(self, row: Row) -> bool:
        if self.error is not None:
            return False
        if not self.phrase:
            return True
        return _column_matches(self.column, self.phrase, row) != self.negated


def _column_matches(column: SearchFilterColumn | None, phrase: str, row: Row) -> bool:
    if column is SearchFilterColumn.NAME:
        return phrase in row.name_lower
    if column is SearchFilterColumn.COMMAND:
        return phrase in row.command_lower
    if column is SearchFilterColumn.PID:
        return phrase == row.pid_text
    return phrase in row.name_lower or phrase in row.command_lower or phrase == row.pid_text


def parse_filter(token: str) -> SearchFilter:
    """Parse a single whitespace-free token. Never raises."""
    negated = token.startswith("-")
    if negated:
        token = token[1:]

    column_token, sep, phrase = token.partition(":")
    if not sep:
        return SearchFilter(phrase=token.lower(), negated=negated)

    try:
        column = parse_column(column_token)
    except UnknownColumnError as e:
        return SearchFilter(phrase=phrase.lower(), column=None, negated=negated, error=e)
    return SearchFilter(phrase=phrase.lower(), column=column, negated=negated)


@dataclass(slots=True, frozen=True)
class SearchQuery:
    """All filters of a search string, combined with AND."""

    text: str = ""
    filters: tuple[SearchFilter, ...] = ()

    @property
    def errors(self) -> list[UnknownColumnError]:
        """Syntax problems worth hinting at in the UI."""
        return [f.error for f in self.filters if f.error is not None]

    @property
    def is_empty(self) -> bool:
        return all(not f.phrase and f.error is None for f in self.filters)

    @property
    def narrowest_phrase(self) -> str:
        """
        Longest phrase of a valid, non-negated filter, or "" if there is none.

        Only such a filter narrows the table down; blanks, empty phrases and
        negations leave most rows in place.
        """
        phrases = [f.phrase for f in self.filters if f.error is None and not f.negated]
        return max(phrases, key=len, default="")

    def matches(self, row: Row) -> bool:
        return all(f.matches(row) for f in self.filters)

    def apply(self, rows: Iterable[Row]) -> list[Row]:
        """Rows matching the query, in their original order."""
        if self.is_empty:
            return list(rows)
        return [row for row in rows if self.matches(row)]


def parse_query(text: str) -> SearchQuery:
    """Parse a search string. Best effort: bad tokens are kept, flagged with an error."""
    return SearchQuery(text=text, filters=tuple(parse_filter(t) for t in text.split()))
