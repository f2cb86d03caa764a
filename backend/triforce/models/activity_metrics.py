"""Secondary per-activity metrics computed after ingestion."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.activity import Activity


class ActivityMetrics(Base):
    """Peak efforts and aerobic metrics for a single activity."""

    __tablename__ = "activity_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    activity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("activities.id"), unique=True, index=True
    )

    # Best average power in watts per duration
    peak_5s: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    peak_30s: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    peak_1min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    peak_5min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    peak_20min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    peak_60min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Best average speed in m/s per duration
    pace_peak_5s: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pace_peak_1min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pace_peak_5min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pace_peak_20min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    efficiency_factor: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    aerobic_decoupling: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # percent

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    activity: Mapped["Activity"] = relationship("Activity", back_populates="metrics")

    def __repr__(self) -> str:
        return f"<ActivityMetrics(activity_id={self.activity_id}, peak_20min={self.peak_20min})>"
