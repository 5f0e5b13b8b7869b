from app.models.job import Job, JobState, JobTimings, JobTotals
from app.models.model import Model

__all__ = ["Job", "JobState", "JobTotals", "JobTimings", "Model"]
