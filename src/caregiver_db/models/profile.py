"""CaregiverProfile ORM model: fields captured from onboarding answers."""

from typing import Literal, get_args

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from caregiver_db.models.base import Base, TimestampMixin

# Profile fields a question may capture from its answer
ProfileField = Literal["name", "caregiving_subject", "relationship_type", "caregiving_duration"]
PROFILE_COLUMNS: tuple[str, ...] = get_args(ProfileField)


class CaregiverProfile(TimestampMixin, Base):
    """One row per user; every captured field is optional."""

    __tablename__ = "caregiver_profiles"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    caregiving_subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    relationship_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    caregiving_duration: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CaregiverProfile(user={self.user_id!r}, name={self.name!r})>"
