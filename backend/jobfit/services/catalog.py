from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Mapping

from jobfit.core import JobRequirement
from jobfit.errors import JobNotFoundError
from jobfit.logging_config import get_logger

logger = get_logger(__name__)


class JobCatalog:
    """Read-only job lookup. Every call reads the current mapping; nothing is cached per request."""

    def __init__(self, jobs: Mapping[int, JobRequirement]):
        self._jobs: Dict[int, JobRequirement] = dict(jobs)

    @classmethod
    def from_file(cls, path: Path) -> "JobCatalog":
        if not path.exists():
            logger.warning("Jobs file %s not found, catalog is empty", path)
            return cls({})
        raw = json.loads(path.read_text(encoding="utf-8"))
        jobs = {int(item["id"]): JobRequirement(**{k: v for k, v in item.items() if k != "id"}) for item in raw}
        logger.info("Loaded %d jobs from %s", len(jobs), path)
        return cls(jobs)

    def get(self, job_id: int) -> JobRequirement:
        try:
            return self._jobs[int(job_id)]
        except (KeyError, ValueError) as e:
            raise JobNotFoundError(job_id) from e

    def __contains__(self, job_id) -> bool:
        return job_id in self._jobs
