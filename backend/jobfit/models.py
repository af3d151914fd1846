from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import time

from jobfit.core import ScoreReport
from jobfit.services.progress import ProgressChannel


@dataclass(frozen=True)
class RawDocument:
    data: bytes
    declared_format: str
    filename: str

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


@dataclass
class ScoringJob:
    request_id: str
    job_id: int
    filename: Optional[str]
    channel: ProgressChannel = field(default_factory=ProgressChannel)
    created_at: float = field(default_factory=lambda: time.time())
    result: Optional[ScoreReport] = None
    error: Optional[dict] = None
    error_status: Optional[int] = None

    @property
    def state(self) -> str:
        if self.result is not None:
            return "done"
        if self.error is not None:
            return "error"
        return "running"
