"""Daily Performance Management Chart values."""

from datetime import datetime
from datetime import date as date_type
from typing import TYPE_CHECKING

from sqlalchemy import Integer, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.user import User


class FitnessMetric(Base):
    """
    One day of training load for a user.

    ctl (fitness) and atl (fatigue) are exponentially weighted averages of
    daily TSS with 42 and 7 day time constants; tsb (form) is ctl - atl.
    """

    __tablename__ = "fitness_metrics"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_fitness_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    date: Mapped[date_type] = mapped_column(Date, index=True)

    daily_tss: Mapped[float] = mapped_column(Float, default=0.0)
    activity_count: Mapped[int] = mapped_column(Integer, default=0)

    ctl: Mapped[float] = mapped_column(Float, default=0.0)
    atl: Mapped[float] = mapped_column(Float, default=0.0)
    tsb: Mapped[float] = mapped_column(Float, default=0.0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="fitness_metrics")

    def __repr__(self) -> str:
        return f"<FitnessMetric(date={self.date}, ctl={self.ctl}, atl={self.atl}, tsb={self.tsb})>"
