from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol

from google import genai
from google.genai import types

from jobfit.core import CVScoringPromptData, ScoreReport, Settings
from jobfit.errors import ScorerError
from jobfit.logging_config import get_logger

logger = get_logger(__name__)

SCORING_PROMPT = """You are an experienced recruiter. Score how well the candidate's CV fits the job on a 0-100 scale.
Return strict JSON with exactly these keys:
{{"score": <integer 0-100>, "summary": "<2-3 sentences>", "strengths": [..], "weaknesses": [..],
"matchingSkills": [..], "missingSkills": [..], "suggestions": [..],
"experienceMatch": "<1 sentence>", "educationMatch": "<1 sentence>"}}
Answer in the language the CV is written in.

JOB
Title: {title}
Company: {company}
Requirements: {requirements}
Description: {description}
Experience level: {experience_level}
Education level: {education_level}
Work type: {work_type}

CV ANALYSIS
Extracted via: {source}{sparse_note}
Skills: {skills}
Experience: {experience}
Education: {education}
Key points:
{key_points}

CV TEXT
{text}
"""

# keys in the model's JSON answer -> ScoreReport fields
_RESPONSE_KEYS = {
    "score": "score",
    "summary": "summary",
    "strengths": "strengths",
    "weaknesses": "weaknesses",
    "matchingSkills": "matching_skills",
    "missingSkills": "missing_skills",
    "suggestions": "suggestions",
    "experienceMatch": "experience_match",
    "educationMatch": "education_match",
}

MAX_CV_CHARS = 12000


class Scorer(Protocol):
    async def score(self, data: CVScoringPromptData) -> ScoreReport: ...


def build_prompt(data: CVScoringPromptData) -> str:
    cv, job = data.cv_analysis, data.job
    return SCORING_PROMPT.format(
        title=job.title,
        company=job.company_name or "-",
        requirements=job.requirement_text or "-",
        description=job.description or "-",
        experience_level=job.experience_level or "-",
        education_level=job.education_level or "-",
        work_type=job.work_type or "-",
        skills=", ".join(cv.skills) or "-",
        experience=cv.experience_summary,
        education=cv.education_summary,
        key_points="\n".join(f"- {p}" for p in cv.key_points) or "-",
        text=cv.extracted_text[:MAX_CV_CHARS],
        source=cv.source,
        sparse_note=" (very little text recovered, treat missing details as unknown)" if cv.is_sparse else "",
    )


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v).strip() for v in value if str(v).strip()]


def normalize_response(payload: Any) -> ScoreReport:
    """Validate the model's JSON answer and turn it into a clamped ScoreReport."""
    if not isinstance(payload, dict):
        raise ScorerError(f"Expected a JSON object, got {type(payload).__name__}")

    raw_score = payload.get("score")
    if isinstance(raw_score, bool) or raw_score is None:
        raise ScorerError("Response is missing 'score'")
    try:
        score = float(raw_score)
    except (TypeError, ValueError) as e:
        raise ScorerError(f"Non-numeric score: {raw_score!r}", cause=e) from e
    if score != score:
        raise ScorerError("Score is NaN")

    fields: Dict[str, Any] = {"score": score}
    for key, name in _RESPONSE_KEYS.items():
        if name == "score":
            continue
        value = payload.get(key, payload.get(name))
        if name in {"summary", "experience_match", "education_match"}:
            fields[name] = str(value or "").strip()
        else:
            fields[name] = _as_list(value)
    return ScoreReport(**fields, scorer="ai")


def parse_response_text(text: Optional[str]) -> ScoreReport:
    if not text:
        raise ScorerError("Empty response from model")
    try:
        payload = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise ScorerError(f"Malformed JSON from model: {e}", cause=e) from e
    return normalize_response(payload)


class GeminiScorer:
    """AI scorer backed by the Gemini API. The client is created on first use."""

    def __init__(self, api_key: str, model: str, temperature: float = 0.2, max_output_tokens: int = 2048):
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiScorer":
        return cls(api_key=settings.gemini_api_key, model=settings.gemini_model)

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise ScorerError("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def score(self, data: CVScoringPromptData) -> ScoreReport:
        client = self._get_client()
        logger.info("Requesting Gemini score (model=%s, cv_chars=%d)", self._model, len(data.cv_analysis.extracted_text))
        response = await client.aio.models.generate_content(
            model=self._model,
            contents=build_prompt(data),
            config=types.GenerateContentConfig(
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
                response_mime_type="application/json",
            ),
        )
        return parse_response_text(response.text)
