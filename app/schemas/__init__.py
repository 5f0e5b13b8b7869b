from app.schemas.job import JobCreateResponse, JobRead, JobTimingsRead, JobTotalsRead
from app.schemas.model import ModelRead, ModelWrite
from app.schemas.rejected import RejectedRow

__all__ = [
    "JobRead",
    "JobTotalsRead",
    "JobTimingsRead",
    "JobCreateResponse",
    "ModelRead",
    "ModelWrite",
    "RejectedRow",
]
