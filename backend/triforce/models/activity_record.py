"""Per-second activity samples."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.activity import Activity


class ActivityRecord(Base):
    """One timestamped sample within an activity. Read-only to analytics."""

    __tablename__ = "activity_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activities.id"), index=True)
    timestamp: Mapped[int] = mapped_column(Integer)  # seconds from activity start

    heart_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # bpm
    power: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # watts
    speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # m/s

    activity: Mapped["Activity"] = relationship("Activity", back_populates="records")

    def __repr__(self) -> str:
        return (
            f"<ActivityRecord(activity_id={self.activity_id}, t={self.timestamp}, "
            f"hr={self.heart_rate}, power={self.power}, speed={self.speed})>"
        )
