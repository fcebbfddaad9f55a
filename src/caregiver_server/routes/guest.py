"""Guest reconciliation endpoint.

Called by the client right after sign-in with the guest buffer blob it kept
in local storage.  On success the client should drop its copy.  On a 503
it keeps the blob and retries later (the sync is idempotent).  A 404 or 400
means the blob names an unknown questionnaire or holds answers that do not
fit it; retrying the same blob cannot succeed.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.guest import GuestBuffer
from caregiver_questionnaire.models.guest import GuestProgress
from caregiver_questionnaire.models.session import SyncResult

from caregiver_server.dependencies import get_db, get_engine, get_user_id

router = APIRouter(prefix="/guest", tags=["guest"])


class GuestSyncResponse(BaseModel):
    """``synced`` is false when the buffer held nothing to sync."""
    synced: bool
    result: SyncResult | None = None


@router.post("/sync")
async def sync_guest_progress(
    body: GuestProgress,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> GuestSyncResponse:
    """Persist a guest buffer for the now-identified caller."""
    buffer = GuestBuffer.from_payload(body)
    result = await engine.sync_guest(db, buffer=buffer, user_id=user_id)
    return GuestSyncResponse(synced=result is not None, result=result)
