"""Athlete profile model holding the threshold values zones are built from."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triforce.models.base import Base

if TYPE_CHECKING:
    from triforce.models.user import User


class AthleteProfile(Base):
    """
    Per-user threshold profile.

    Only the scalar thresholds are stored. Zone tables are always recomputed
    from them, so a zone family exists only when its threshold is set.
    """

    __tablename__ = "athlete_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), unique=True, index=True)

    # Thresholds
    lthr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # bpm
    ftp: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # watts
    threshold_pace: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # m/s
    css: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # m/s

    # Heart rate bounds
    max_hr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resting_hr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="profile")

    def __repr__(self) -> str:
        return (
            f"<AthleteProfile(user_id={self.user_id}, lthr={self.lthr}, ftp={self.ftp}, "
            f"threshold_pace={self.threshold_pace}, css={self.css})>"
        )
