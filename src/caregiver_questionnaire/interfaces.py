"""Abstract interfaces for the engine's external collaborators.

These ABCs define the contract that host applications must fulfil.  The
SDK ships in-process storage implementations in
``caregiver_questionnaire.guest``; the database-backed profile writer
lives in ``caregiver_server.profiles``.

Typical wiring::

    engine = QuestionnaireEngine(profiles=DatabaseProfileWriter())
    buffer = GuestBuffer(JsonFileStorage(Path("~/.caregiver").expanduser()))

    # Guest answers go to the buffer ...
    await engine.submit_answer(db, questionnaire_id="onboarding",
                               question_id="onb-q1", choice=choice,
                               buffer=buffer)
    # ... and are reconciled once the user signs in.
    await engine.sync_guest(db, buffer=buffer, user_id="u-1")
"""

from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession


class ProfileWriter(ABC):
    """Reads and writes the caregiver profile fields captured from answers.

    Field names are those of ``caregiver_db.models.profile.PROFILE_COLUMNS``.
    Implementations write through ``db`` so the write shares the caller's
    transaction.
    """

    @abstractmethod
    async def write_fields(
        self, db: AsyncSession, user_id: str, fields: dict[str, str]
    ) -> None:
        """Store ``fields`` on the user's profile, creating it if needed."""
        ...

    @abstractmethod
    async def read_fields(self, db: AsyncSession, user_id: str) -> dict[str, str]:
        """Return the captured fields of the user's profile (empty if none)."""
        ...


class LocalStorage(ABC):
    """Client-side key/value storage holding one JSON blob per key.

    Modelled on the browser's ``localStorage``: synchronous, string values,
    no expiry.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...
