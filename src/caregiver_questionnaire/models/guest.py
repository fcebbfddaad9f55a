"""Guest buffer models: progress kept in local storage before sign-in."""

from typing import Optional

from pydantic import BaseModel, Field

from caregiver_db.models.profile import ProfileField

from caregiver_questionnaire.models.graph import Choice


class GuestResponse(BaseModel):
    question_id: str
    choice: Choice


class GuestProgress(BaseModel):
    """The JSON blob stored under ``GUEST_BUFFER_KEY``.

    Holds progress for a single questionnaire; starting another one resets it.
    """

    questionnaire_id: str
    responses: list[GuestResponse] = Field(default_factory=list)
    # Profile fields captured from answers, applied on sync
    captured_fields: dict[ProfileField, str] = Field(default_factory=dict)

    def answers(self) -> dict[str, Choice]:
        return {r.question_id: r.choice for r in self.responses}

    def upsert(self, question_id: str, choice: Choice) -> None:
        """Replace the answer to ``question_id`` in place, or append it."""
        for r in self.responses:
            if r.question_id == question_id:
                r.choice = choice
                return
        self.responses.append(GuestResponse(question_id=question_id, choice=choice))

    def response_for(self, question_id: str) -> Optional[Choice]:
        return self.answers().get(question_id)
