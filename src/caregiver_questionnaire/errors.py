"""Exception hierarchy raised by the questionnaire SDK.

Every error derives from :class:`QuestionnaireError` so callers can catch
the whole family at once.  The server maps each concrete class to an HTTP
status code in ``caregiver_server.errors``.

Errors that describe bad caller input also derive from ``ValueError``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError


class QuestionnaireError(Exception):
    """Base class for all questionnaire engine errors."""


class GraphIntegrityError(QuestionnaireError):
    """The question graph is malformed (empty, no entry point, cyclic...)."""


class DanglingEdgeError(GraphIntegrityError):
    """An option points at a question id that does not exist."""

    def __init__(self, option_id: str, next_question_id: str) -> None:
        self.option_id = option_id
        self.next_question_id = next_question_id
        super().__init__(
            f"Option {option_id!r} points at unknown question {next_question_id!r}"
        )


class NotFoundError(QuestionnaireError, LookupError):
    """A definition, question or session does not exist."""


class DefinitionStateError(QuestionnaireError):
    """A lifecycle transition is not allowed from the definition's status."""


class PersistenceError(QuestionnaireError):
    """The durable store failed.  Wraps the underlying SQLAlchemy error."""


class SessionClosedError(QuestionnaireError):
    """A write was attempted against a completed or abandoned session."""


class InvalidAnswerError(QuestionnaireError, ValueError):
    """A submitted choice does not fit the question it answers."""


class ScoringError(QuestionnaireError, ValueError):
    """Responses cannot be reduced to a score under the chosen policy."""


class SyncError(QuestionnaireError):
    """The store failed while reconciling guest progress.

    Transient by construction: the guest buffer is left intact and the
    same sync can be retried.  Problems retrying cannot fix (unknown
    questionnaire, invalid buffered answer) are raised as their own errors.
    """


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """Re-raise ``SQLAlchemyError`` raised inside the block as ``PersistenceError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{action} failed: {exc}") from exc
