"""Questionnaire endpoints: list, current step, answer, complete, progress.

The caller is identified by ``X-User-ID``.  Without it the caller is a
guest: the server keeps nothing for guests, so the client sends its buffer
blob (``guest_progress``) with each answer and stores the updated blob the
response carries back.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.guest import GuestBuffer
from caregiver_questionnaire.models.graph import Choice
from caregiver_questionnaire.models.guest import GuestProgress
from caregiver_questionnaire.models.session import (
    QuestionnaireProgress,
    SessionInfo,
    StepResult,
)

from caregiver_server.dependencies import (
    get_db,
    get_engine,
    get_optional_user_id,
    get_user_id,
)

router = APIRouter(prefix="/questionnaires", tags=["questionnaires"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class QuestionnaireSummary(BaseModel):
    """One published questionnaire in a listing."""
    id: str
    title: str
    description: str | None = None
    kind: str
    question_count: int


class SubmitAnswerRequest(BaseModel):
    """Body for POST /questionnaires/{id}/answers.

    Choice questions send ``option_ids``; free-text questions send
    ``free_text``.  Guests also send their current ``guest_progress``.
    """
    question_id: str
    option_ids: list[str] = Field(default_factory=list)
    free_text: str | None = None
    guest_progress: GuestProgress | None = None


class SubmitAnswerResponse(BaseModel):
    step: StepResult
    # Updated buffer for guests to store; None for identified users
    guest_progress: GuestProgress | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("")
async def list_questionnaires(
    kind: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> list[QuestionnaireSummary]:
    """List published questionnaires, optionally filtered by ``kind``."""
    definitions = await engine.catalog.list_published(db, kind=kind)
    return [
        QuestionnaireSummary(
            id=d.id,
            title=d.title,
            description=d.description,
            kind=d.kind.value,
            question_count=len(d.questions),
        )
        for d in definitions
    ]


@router.get("/{questionnaire_id}/step")
async def get_current_step(
    questionnaire_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> StepResult:
    """Return the question the caller should answer next.

    Guests always get the first question; they resume from their own
    buffer through the answers endpoint.
    """
    return await engine.get_current_step(
        db, questionnaire_id=questionnaire_id, user_id=user_id,
    )


@router.post("/{questionnaire_id}/answers")
async def submit_answer(
    questionnaire_id: str,
    body: SubmitAnswerRequest,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> SubmitAnswerResponse:
    """Record an answer and return the next step."""
    choice = Choice(option_ids=body.option_ids, free_text=body.free_text)

    if user_id is not None:
        step = await engine.submit_answer(
            db,
            questionnaire_id=questionnaire_id,
            question_id=body.question_id,
            choice=choice,
            user_id=user_id,
        )
        return SubmitAnswerResponse(step=step)

    buffer = GuestBuffer.from_payload(
        body.guest_progress or GuestProgress(questionnaire_id=questionnaire_id)
    )
    step = await engine.submit_answer(
        db,
        questionnaire_id=questionnaire_id,
        question_id=body.question_id,
        choice=choice,
        buffer=buffer,
    )
    return SubmitAnswerResponse(step=step, guest_progress=buffer.load())


@router.post("/{questionnaire_id}/complete")
async def complete_questionnaire(
    questionnaire_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> SessionInfo | None:
    """Complete the caller's active session.

    Idempotent: returns ``null`` when there is no active session, so a
    client may retry after a network failure.
    """
    return await engine.complete(
        db, questionnaire_id=questionnaire_id, user_id=user_id,
    )


@router.get("/{questionnaire_id}/progress")
async def get_progress(
    questionnaire_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> QuestionnaireProgress:
    """Resume summary for the caller's current attempt."""
    return await engine.get_progress(
        db, questionnaire_id=questionnaire_id, user_id=user_id,
    )
