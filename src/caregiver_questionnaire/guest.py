"""Guest buffer and cloud sync.

Users who have not signed in still get to answer the onboarding
questionnaire.  Their answers live in a single JSON blob in client-side
storage (a :class:`LocalStorage`) behind an explicit :class:`GuestBuffer`
handle.  When the user signs in, :class:`GuestSync` replays the buffer
into durable storage and clears it.

Sync contract:
  1. check every buffered answer against the published definition; the
     blob comes from the client, so nothing is written if any answer fails
  2. find or open the user's active session for the buffered questionnaire
  3. upsert every buffered answer under its (session, question) key
  4. write captured profile fields through the profile collaborator
  5. clear the buffer only after 3 and 4 succeed

A store failure raises ``SyncError`` (retryable).  Unknown questionnaires
and invalid answers raise their own errors unchanged, since retrying them
cannot succeed.  Either way the buffer is left untouched.  Because every
write is an upsert, re-running the sync with the same buffer yields the
same rows.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_questionnaire.constants import GUEST_BUFFER_KEY
from caregiver_questionnaire.definitions import DefinitionCatalog
from caregiver_questionnaire.errors import (
    InvalidAnswerError,
    NotFoundError,
    PersistenceError,
    SyncError,
)
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.interfaces import LocalStorage, ProfileWriter
from caregiver_questionnaire.models.graph import Choice
from caregiver_questionnaire.models.guest import GuestProgress
from caregiver_questionnaire.models.session import SyncResult
from caregiver_questionnaire.responses import ResponseStore, validate_choice
from caregiver_questionnaire.sessions import SessionManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------

class InMemoryLocalStorage(LocalStorage):
    """Dict-backed storage; one instance per simulated client."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(LocalStorage):
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Buffer handle
# ---------------------------------------------------------------------------

class GuestBuffer:
    """Typed access to the guest progress blob stored under one key.

    Args:
        storage: where the blob lives
        key: storage key (default ``GUEST_BUFFER_KEY``)
    """

    def __init__(self, storage: LocalStorage, key: str = GUEST_BUFFER_KEY) -> None:
        self._storage = storage
        self._key = key

    def load(self) -> GuestProgress | None:
        """Return the stored progress, or ``None`` when absent or unreadable.

        A corrupt blob is logged and treated as absent; the next write
        replaces it.
        """
        raw = self._storage.get(self._key)
        if raw is None:
            return None
        try:
            return GuestProgress.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable guest buffer %s: %s", self._key, exc)
            return None

    def save(self, progress: GuestProgress) -> None:
        self._storage.set(self._key, progress.model_dump_json())

    def clear(self) -> None:
        self._storage.remove(self._key)

    def is_empty(self) -> bool:
        progress = self.load()
        return progress is None or not (progress.responses or progress.captured_fields)

    def ensure(self, questionnaire_id: str) -> GuestProgress:
        """Progress for ``questionnaire_id``, resetting a buffer held for another one."""
        progress = self.load()
        if progress is None or progress.questionnaire_id != questionnaire_id:
            if progress is not None:
                logger.info(
                    "Guest buffer reset: %s -> %s",
                    progress.questionnaire_id, questionnaire_id,
                )
            progress = GuestProgress(questionnaire_id=questionnaire_id)
        return progress

    def upsert_response(
        self, questionnaire_id: str, question_id: str, choice: Choice
    ) -> GuestProgress:
        """Record an answer, replacing any earlier answer to the same question."""
        progress = self.ensure(questionnaire_id)
        progress.upsert(question_id, choice)
        self.save(progress)
        return progress

    def capture_field(self, questionnaire_id: str, field: str, value: str) -> GuestProgress:
        """Remember a profile field to apply on sync."""
        progress = self.ensure(questionnaire_id)
        progress.captured_fields[field] = value
        self.save(progress)
        return progress

    @classmethod
    def from_payload(cls, progress: GuestProgress, key: str = GUEST_BUFFER_KEY) -> "GuestBuffer":
        """A buffer backed by fresh in-memory storage holding ``progress``."""
        storage = InMemoryLocalStorage({key: progress.model_dump_json()})
        return cls(storage, key)


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

class GuestSync:
    """Reconciles a guest buffer into the user's durable session.

    Args:
        sessions: session manager used to find or open the session
        responses: response store used for the upserts
        profiles: profile collaborator for captured fields (optional)
        catalog: definition lookup used to check the buffered answers
    """

    def __init__(
        self,
        sessions: SessionManager | None = None,
        responses: ResponseStore | None = None,
        profiles: ProfileWriter | None = None,
        catalog: DefinitionCatalog | None = None,
    ) -> None:
        self._sessions = sessions or SessionManager()
        self._responses = responses or ResponseStore()
        self._profiles = profiles
        self._catalog = catalog or DefinitionCatalog()

    async def sync_to_cloud(
        self,
        db: AsyncSession,
        buffer: GuestBuffer,
        user_id: str,
        *,
        clear: bool = True,
    ) -> SyncResult | None:
        """Persist the buffered answers for ``user_id``.

        Returns ``None`` when there is nothing to sync.  With ``clear=False``
        the caller owns clearing the buffer once its own follow-up work has
        succeeded.

        Raises:
            NotFoundError: the buffered questionnaire is unknown or a draft
            InvalidAnswerError: a buffered answer does not fit its question
            SyncError: the store failed; safe to retry with the same buffer
        """
        progress = buffer.load()
        if progress is None or not (progress.responses or progress.captured_fields):
            return None

        choices = await self._checked_choices(db, progress)
        if progress.captured_fields and self._profiles is None:
            raise RuntimeError("Captured profile fields but no profile writer is configured")

        try:
            session_id = await self._sessions.get_or_create_active_session(
                db, user_id=user_id, questionnaire_id=progress.questionnaire_id,
            )
            for question_id, choice in choices.items():
                await self._responses.upsert_response(
                    db, session_id=session_id, question_id=question_id, choice=choice,
                )
            if progress.captured_fields:
                await self._profiles.write_fields(db, user_id, dict(progress.captured_fields))
        except (PersistenceError, SQLAlchemyError) as exc:
            logger.warning(
                "Guest sync failed for user=%s questionnaire=%s: %s",
                user_id, progress.questionnaire_id, exc,
            )
            raise SyncError(f"Guest sync failed: {exc}") from exc

        if clear:
            buffer.clear()
        logger.info(
            "Guest sync done: user=%s session=%s responses=%d fields=%s",
            user_id, session_id, len(choices), sorted(progress.captured_fields),
        )
        return SyncResult(
            session_id=session_id,
            questionnaire_id=progress.questionnaire_id,
            responses_synced=len(choices),
            profile_fields=sorted(progress.captured_fields),
        )

    async def _checked_choices(
        self, db: AsyncSession, progress: GuestProgress
    ) -> dict[str, Choice]:
        """Validate every buffered answer before anything is written."""
        definition = await self._catalog.get_traversable(db, progress.questionnaire_id)
        graph = QuestionGraph(definition)
        choices: dict[str, Choice] = {}
        for item in progress.responses:
            try:
                question = graph.get(item.question_id)
            except NotFoundError:
                raise InvalidAnswerError(
                    f"Buffered answer to unknown question {item.question_id!r} "
                    f"in {progress.questionnaire_id!r}"
                ) from None
            choices[item.question_id] = validate_choice(question, item.choice)
        return choices
