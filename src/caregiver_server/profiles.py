"""Database-backed :class:`ProfileWriter` over the ``caregiver_profiles`` table."""

from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.repository import PROFILE_COLUMNS, ProfileRepository
from caregiver_questionnaire.errors import translate_store_errors
from caregiver_questionnaire.interfaces import ProfileWriter


class DatabaseProfileWriter(ProfileWriter):
    """Writes captured fields in the caller's transaction."""

    def __init__(self, repo: ProfileRepository | None = None) -> None:
        self._repo = repo or ProfileRepository()

    async def write_fields(
        self, db: AsyncSession, user_id: str, fields: dict[str, str]
    ) -> None:
        with translate_store_errors("write_profile_fields"):
            await self._repo.upsert_fields(db, user_id, fields)

    async def read_fields(self, db: AsyncSession, user_id: str) -> dict[str, str]:
        with translate_store_errors("read_profile_fields"):
            row = await self._repo.get(db, user_id)
        if row is None:
            return {}
        return {
            col: getattr(row, col)
            for col in PROFILE_COLUMNS
            if getattr(row, col) is not None
        }
