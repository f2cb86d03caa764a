"""Database models for the Triforce analytics backend."""

from triforce.models.base import Base
from triforce.models.user import User
from triforce.models.athlete_profile import AthleteProfile
from triforce.models.activity import Activity, SportType, WorkoutType
from triforce.models.activity_record import ActivityRecord
from triforce.models.activity_metrics import ActivityMetrics
from triforce.models.fitness_metric import FitnessMetric
from triforce.models.training_plan import PlanStatus, PlanWeek, TrainingPlan, WeekType

__all__ = [
    "Base",
    "User",
    "AthleteProfile",
    "Activity",
    "SportType",
    "WorkoutType",
    "ActivityRecord",
    "ActivityMetrics",
    "FitnessMetric",
    "TrainingPlan",
    "PlanWeek",
    "PlanStatus",
    "WeekType",
]
