"""
Error taxonomy of the persistence layer.

Storage errors are not translated: a constraint violation is SQLAlchemy's
`IntegrityError`, a connectivity/timeout problem is `OperationalError`. They
are re-exported under the names the callers use and annotated with the
repository operation that raised them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

ConstraintViolation = IntegrityError
TransientStorageError = OperationalError


class ItsmError(Exception):
    """Base class for errors raised by the persistence layer itself."""


class NotFoundError(ItsmError, LookupError):
    """A lookup by identifier returned no (visible) row."""

    def __init__(self, entity: str, identifier: Any) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier!r} not found")


class MalformedInputError(ItsmError, ValueError):
    """Pagination or filter values that cannot be normalized."""


@contextmanager
def storage_operation(name: str) -> Iterator[None]:
    """Annotate storage errors raised inside the block with the operation name."""

    try:
        yield
    except SQLAlchemyError as exc:
        exc.add_note(f"itsm operation: {name}")
        raise
