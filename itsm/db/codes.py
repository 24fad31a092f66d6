"""
Sequential human-readable codes: `<PREFIX>-<YEAR>-<NNNN>`.

`next_code` only proposes a candidate. Two requests can compute the same
candidate before either commits; the unique index on the code column is what
actually prevents duplicates, and `insert_with_code` turns the resulting
constraint violation into a regenerate-and-retry. Any other integrity error
(a NULL column, a dangling foreign key) propagates on the first attempt.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from itsm.db.base import utcnow
from itsm.settings import get_settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

_CODE_RE = re.compile(r"^(?P<prefix>.+)-(?P<year>\d{4})-(?P<sequence>\d+)$")


@dataclass(frozen=True, order=True)
class EntityCode:
    prefix: str
    year: int
    sequence: int

    def __str__(self) -> str:
        return f"{self.prefix}-{self.year}-{self.sequence:04d}"

    @classmethod
    def parse(cls, value: str | None) -> EntityCode | None:
        """Best effort: anything that does not look like a code yields None."""

        if not value:
            return None
        match = _CODE_RE.match(value.strip())
        if match is None:
            return None
        return cls(
            prefix=match.group("prefix"),
            year=int(match.group("year")),
            sequence=int(match.group("sequence")),
        )


def current_year() -> int:
    return utcnow().year


def next_code(db: Session, column: Any, prefix: str, year: int | None = None, *criteria: Any) -> str:
    """
    Next candidate code for `prefix` and `year` in `column`.

    Soft-deleted rows are scanned too: a deleted ticket's code is never
    handed out again. `criteria` narrows the scan, e.g. to one project for
    per-project task codes.
    """

    year = current_year() if year is None else year
    stmt = (
        select(column)
        .where(column.startswith(f"{prefix}-{year}-", autoescape=True), *criteria)
        .execution_options(include_deleted=True)
    )

    highest = 0
    for value in db.scalars(stmt):
        parsed = EntityCode.parse(value)
        if parsed is None or parsed.prefix != prefix or parsed.year != year:
            logger.debug("Skipping malformed code %r while numbering %s-%s", value, prefix, year)
            continue
        highest = max(highest, parsed.sequence)

    return str(EntityCode(prefix=prefix, year=year, sequence=highest + 1))


def insert_with_code(
    db: Session,
    build: Callable[[str], ModelT],
    generate: Callable[[], str],
    is_taken: Callable[[str], bool],
    *,
    retries: int | None = None,
) -> ModelT:
    """
    Insert `build(code)` with a freshly generated code.

    Each attempt runs in its own SAVEPOINT so a failed attempt only rolls back
    itself. An IntegrityError is retried only when `is_taken(code)` confirms
    the candidate is already in use; after `retries` regenerations it
    propagates.
    """

    if retries is None:
        retries = get_settings().code_generation_retries
    attempts = retries + 1

    for attempt in range(1, attempts + 1):
        code = generate()
        entity = build(code)
        try:
            with db.begin_nested():
                db.add(entity)
                db.flush()
        except IntegrityError as exc:
            if not is_taken(code):
                raise
            if attempt == attempts:
                exc.add_note(f"generated code {code} still collided after {attempts} attempt(s)")
                raise
            logger.warning("Generated code %s collided (attempt %d/%d); regenerating", code, attempt, attempts)
            continue
        return entity

    raise RuntimeError("unreachable: code generation loop exited without result")
