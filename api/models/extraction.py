"""
Pydantic models for batch extraction and enrichment runs.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from models.carrier import CarrierRecord


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    LIMIT_REACHED = "limit_reached"


class EnrichmentStage(str, Enum):
    IDLE = "idle"
    INSURANCE = "insurance"
    SAFETY = "safety"


class ExtractionConfig(BaseModel):
    """
    Configuration for one batch extraction run.

    The batch walks the MC numbers [start_point, start_point + record_count).
    """

    start_point: str = Field(
        "1580000",
        description="First MC number of the range"
    )

    record_count: int = Field(
        50,
        ge=1,
        le=100000,
        description="Number of consecutive MC numbers to process"
    )

    include_carriers: bool = Field(
        True,
        description="Accept records whose entity type contains CARRIER"
    )

    include_brokers: bool = Field(
        False,
        description="Accept records whose entity type contains BROKER"
    )

    only_authorized: bool = Field(
        True,
        description="Accept only records with an AUTHORIZED (and not NOT AUTHORIZED) status"
    )

    use_mock_data: bool = Field(
        False,
        description="Generate synthetic records instead of scraping"
    )

    use_proxy: bool = Field(
        True,
        description="Route requests through the backend proxy and relay network instead of direct fetches"
    )

    @field_validator('start_point')
    @classmethod
    def validate_start_point(cls, v: str) -> str:
        """Ensure the start point is a numeric MC number."""
        v = v.strip()
        if not v.isdigit():
            raise ValueError("start_point must be a numeric MC number")
        return v

    def mc_numbers(self) -> List[str]:
        """The unit-of-work set in dispatch order."""
        start = int(self.start_point)
        return [str(start + i) for i in range(self.record_count)]


class BatchProgress(BaseModel):
    state: BatchState
    total: int
    completed: int
    accepted: int
    failed: int
    percent: int


class BatchResult(BaseModel):
    """Summary of a finished (or refused) batch run."""

    state: BatchState
    total: int = 0
    dispatched: int = 0
    completed: int = 0
    accepted: List[CarrierRecord] = Field(default_factory=list)
    failed: int = 0
    filtered_out: int = 0
    db_saved: int = 0
    progress: int = 0
    logs: List[str] = Field(default_factory=list)

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)


class StageStats(BaseModel):
    found: int = 0
    failed: int = 0
    persisted: int = 0


class EnrichmentProgress(BaseModel):
    stage: EnrichmentStage
    percent: int
    insurance: StageStats
    safety: StageStats


class EnrichmentResult(BaseModel):
    total: int = 0
    insurance: StageStats = Field(default_factory=StageStats)
    safety: StageStats = Field(default_factory=StageStats)
    progress: int = 0
    stopped: bool = False
    records: List[CarrierRecord] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

    @property
    def db_saved(self) -> int:
        return self.insurance.persisted + self.safety.persisted


class SessionStatus(BaseModel):
    """Snapshot of a user's extraction session for the job-control endpoints."""

    user_id: str
    batch_state: BatchState
    batch_progress: int
    enrichment_stage: EnrichmentStage
    enrichment_progress: int
    records_extracted_today: int
    daily_limit: int
    carriers: int
    limit_reached: bool = False
    last_batch: Optional[dict] = None
    last_enrichment: Optional[dict] = None
    logs: List[str] = Field(default_factory=list)
