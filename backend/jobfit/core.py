import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

MAX_FILE_MB = 10
MAX_FILE_BYTES = MAX_FILE_MB * 1024 * 1024

ALLOWED_EXT = {".pdf", ".docx", ".jpg", ".jpeg", ".png"}
ALLOWED_MIME = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/png",
}

# finished requests are kept this long for status/result/report lookups
FINISHED_JOB_TTL_SECONDS = 60 * 60

# below this many characters extracted text counts as a soft failure
SPARSE_TEXT_CHARS = 20

BASE_DIR = Path(__file__).resolve().parent.parent
PACKAGE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    gemini_api_key: str
    gemini_model: str
    ai_timeout_seconds: float
    fallback_delay_seconds: float
    progress_interval_seconds: float
    upload_dir: Path
    jobs_file: Path
    locale: str
    ocr_lang: str
    cors_origin: str

    @property
    def is_prod(self) -> bool:
        return self.env in {"prod", "production"}


def load_settings() -> Settings:
    return Settings(
        env=os.getenv("ENV", "dev").strip().lower(),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip(),
        ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "120")),
        fallback_delay_seconds=float(os.getenv("FALLBACK_DELAY_SECONDS", "3")),
        progress_interval_seconds=float(os.getenv("PROGRESS_INTERVAL_SECONDS", "1")),
        upload_dir=Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads"))),
        jobs_file=Path(os.getenv("JOBS_FILE", str(PACKAGE_DIR / "data" / "jobs.json"))),
        locale=os.getenv("LOCALE", "en").strip().lower(),
        ocr_lang=os.getenv("OCR_LANG", "eng").strip(),
        cors_origin=os.getenv("CORS_ORIGIN", "http://localhost:3000").strip(),
    )


class Stage(str, Enum):
    UPLOADING = "Uploading"
    EXTRACTING = "Extracting"
    ANALYZING = "Analyzing"
    AWAITING_SCORE = "AwaitingScore"
    FINALIZING = "Finalizing"
    DONE = "Done"
    FAILED = "Failed"


TERMINAL_STAGES = {Stage.DONE, Stage.FAILED}


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: Stage
    percent: int = Field(ge=0, le=100)
    message: str


class AnalysisRecord(BaseModel):
    """Structured signal pulled out of one résumé. Built once, never mutated."""

    model_config = ConfigDict(frozen=True)

    extracted_text: str
    skills: List[str] = Field(default_factory=list)
    experience_summary: str
    education_summary: str
    key_points: List[str] = Field(default_factory=list, max_length=5)
    source: str

    @computed_field
    @property
    def is_sparse(self) -> bool:
        return len(self.extracted_text) < SPARSE_TEXT_CHARS


class JobRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    company_name: str = ""
    requirement_text: str = ""
    description: str = ""
    experience_level: Optional[str] = None
    education_level: Optional[str] = None
    work_type: Optional[str] = None


class CVScoringPromptData(BaseModel):
    cv_analysis: AnalysisRecord
    job: JobRequirement


def clamp_score(value) -> int:
    # bound first so infinities land on the nearest edge
    return int(round(max(0.0, min(100.0, float(value)))))


class ScoreReport(BaseModel):
    score: int
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    matching_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    experience_match: str = ""
    education_match: str = ""

    # set when the report stands in for a failed AI call
    degraded: bool = False
    scorer: Literal["ai", "demo"] = "ai"

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp_score(v)

    @field_validator("matching_skills", "missing_skills")
    @classmethod
    def _dedupe(cls, v: List[str]) -> List[str]:
        seen = set()
        out = []
        for s in v:
            key = s.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            out.append(s.strip())
        return out


class AnalyzeResponse(BaseModel):
    status: bool = True
    request_id: str


class StatusResponse(BaseModel):
    status: bool = True
    request_id: str
    state: str
    stage: Stage
    progress: int = Field(ge=0, le=100)
    message: str
    error: Optional[str] = None


class DemoRequest(BaseModel):
    job_id: int
