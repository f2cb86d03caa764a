"""Activity model for completed training sessions."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Integer, String, DateTime, Float, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.activity_metrics import ActivityMetrics
    from triforce.models.activity_record import ActivityRecord
    from triforce.models.user import User


class SportType(str, PyEnum):
    """Sport of an activity."""
    SWIM = "SWIM"
    BIKE = "BIKE"
    RUN = "RUN"
    STRENGTH = "STRENGTH"
    OTHER = "OTHER"


class WorkoutType(str, PyEnum):
    """Kind of session, as tagged on import."""
    RACE = "RACE"
    LONG_RUN = "LONG_RUN"
    TEMPO = "TEMPO"
    INTERVALS = "INTERVALS"
    RECOVERY = "RECOVERY"
    ENDURANCE = "ENDURANCE"
    STRENGTH = "STRENGTH"
    BRICK = "BRICK"
    TIME_TRIAL = "TIME_TRIAL"
    OPEN_WATER = "OPEN_WATER"
    TECHNIQUE = "TECHNIQUE"
    OTHER = "OTHER"


class Activity(Base):
    """
    Summary of one completed activity.

    Rows are created by ingestion. ``efficiency_factor`` and ``decoupling`` are
    filled in by the aerobic analytics service as cached values.
    """

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)

    # Activity details
    name: Mapped[str] = mapped_column(String(255))
    sport_type: Mapped[SportType] = mapped_column(Enum(SportType), index=True)
    workout_type: Mapped[Optional[WorkoutType]] = mapped_column(Enum(WorkoutType), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, index=True)

    # Performance metrics
    moving_time: Mapped[int] = mapped_column(Integer)  # seconds
    distance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # meters
    avg_heart_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # bpm
    avg_speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # m/s
    avg_power: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # watts
    normalized_power: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # watts
    tss: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # Training Stress Score

    # Cached aerobic analytics
    efficiency_factor: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    decoupling: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # percent

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="activities")
    records: Mapped[List["ActivityRecord"]] = relationship(
        "ActivityRecord", back_populates="activity", cascade="all, delete-orphan"
    )
    metrics: Mapped[Optional["ActivityMetrics"]] = relationship(
        "ActivityMetrics", back_populates="activity", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, name='{self.name}', sport={self.sport_type}, date={self.start_date})>"
