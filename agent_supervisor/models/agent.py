"""Agent identity and validation result models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProbeOutcome(str, Enum):
    """Classification of a finished probe."""

    REACHABLE_VALID = "reachable_valid"
    REACHABLE_INVALID = "reachable_invalid"
    UNREACHABLE = "unreachable"
    TIMED_OUT = "timed_out"


class ValidationVerdict(str, Enum):
    """Final decision for an agent image."""

    VALIDATED = "validated"
    REJECTED = "rejected"
    FAILED = "failed"


class AgentIdentity(BaseModel):
    """Identity payload an agent returns from its identity path."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    owner: str = Field(..., alias="Owner", description="Owner of the agent")
    taunts: List[str] = Field(
        ..., alias="Taunts", description="Display strings shown during play"
    )


@dataclass
class ProbeReport:
    """Successful probe: the decoded identity and how long it took."""

    identity: AgentIdentity
    url: str
    attempts: int
    elapsed: float
    outcome: ProbeOutcome = ProbeOutcome.REACHABLE_VALID


@dataclass
class ValidationResult:
    """Outcome of validating one image.

    ``error`` is the primary reason for a rejection or failure.
    ``teardown_error`` is reported separately and never changes the verdict.
    """

    image: str
    verdict: ValidationVerdict
    identity: Optional[AgentIdentity] = None
    error: Optional[Exception] = None
    teardown_error: Optional[Exception] = None
    container_id: Optional[str] = None
    outcome: Optional[ProbeOutcome] = None
    attempts: int = 0
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.verdict == ValidationVerdict.VALIDATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image": self.image,
            "valid": self.ok,
            "verdict": self.verdict.value,
            "outcome": self.outcome.value if self.outcome else None,
            "identity": self.identity.model_dump() if self.identity else None,
            "error": str(self.error) if self.error else None,
            "teardown_error": str(self.teardown_error) if self.teardown_error else None,
            "container_id": self.container_id[:12] if self.container_id else None,
            "attempts": self.attempts,
            "duration_ms": round(self.duration_ms, 2),
        }
