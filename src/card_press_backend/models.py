from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import generate_random_dob


class ApplicantRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    address1: str = ""
    address2: str = ""
    date_of_birth: date

    @classmethod
    def from_form(
        cls,
        first_name: str,
        last_name: str,
        address1: str = "",
        address2: str = "",
        date_of_birth: Optional[str] = None,
    ) -> "ApplicantRecord":
        """Build a record from submitted form values, inventing a DOB when none is given."""
        return cls(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            address1=address1.strip(),
            address2=address2.strip(),
            date_of_birth=date.fromisoformat(date_of_birth or generate_random_dob()),
        )


class BearerCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    expires_at: float

    def is_fresh(self, now: float, safety_margin: float) -> bool:
        return now < self.expires_at - safety_margin


class JobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobEvent(BaseModel):
    timestamp: datetime
    message: str


class StatusReport(BaseModel):
    """One answer from an edit job's status URL."""

    state: str
    output_ref: Optional[str] = None
    error_detail: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in {JobState.SUCCEEDED.value, JobState.FAILED.value}


class Submission(BaseModel):
    """
    The editing service's answer to a submitted job.

    Most endpoints answer with a status URL to poll. Some answer with the
    result location right away, carried here as a terminal ``report``.
    """

    status_url: Optional[str] = None
    report: Optional[StatusReport] = None
