"""Training plan and plan week models read by the fitness forecast."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Integer, String, DateTime, Float, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.user import User


class PlanStatus(str, PyEnum):
    """Lifecycle state of a training plan."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WeekType(str, PyEnum):
    """Role of a week inside a plan."""
    NORMAL = "NORMAL"
    RECOVERY = "RECOVERY"
    TEST = "TEST"
    RACE = "RACE"
    TRANSITION = "TRANSITION"


class TrainingPlan(Base):
    """Structured training plan made of consecutive weeks."""

    __tablename__ = "training_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)

    name: Mapped[str] = mapped_column(String(255))
    target_event: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[datetime] = mapped_column(DateTime)
    status: Mapped[PlanStatus] = mapped_column(Enum(PlanStatus), default=PlanStatus.ACTIVE)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="training_plans")
    weeks: Mapped[List["PlanWeek"]] = relationship(
        "PlanWeek",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanWeek.week_number",
    )

    def __repr__(self) -> str:
        return f"<TrainingPlan(id={self.id}, name='{self.name}', status={self.status})>"


class PlanWeek(Base):
    """A single week of a training plan with its load target."""

    __tablename__ = "plan_weeks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("training_plans.id"), index=True)

    week_number: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[datetime] = mapped_column(DateTime)
    target_tss: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    week_type: Mapped[WeekType] = mapped_column(Enum(WeekType), default=WeekType.NORMAL)

    plan: Mapped["TrainingPlan"] = relationship("TrainingPlan", back_populates="weeks")

    def __repr__(self) -> str:
        return f"<PlanWeek(plan_id={self.plan_id}, week={self.week_number}, tss={self.target_tss})>"
