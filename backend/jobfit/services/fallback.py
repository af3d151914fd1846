from __future__ import annotations

import zlib
from typing import List, Tuple

from jobfit.core import JobRequirement, ScoreReport
from jobfit.services.analyzer import extract_skills

BASE_SCORE = 55
SCORE_SPREAD = 30


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _seed(job_id: int) -> int:
    return zlib.crc32(str(job_id).encode("utf-8"))


def required_skills(requirement: JobRequirement) -> List[str]:
    return extract_skills(f"{requirement.requirement_text} {requirement.description}")


def _split_skills(skills: List[str], seed: int) -> Tuple[List[str], List[str]]:
    """
    Deterministic matching/missing split. Roughly two thirds land on the
    matching side; the offset varies per job so demos differ between jobs.
    """
    if not skills:
        return [], []
    offset = seed % 3
    matching = [s for i, s in enumerate(skills) if (i + offset) % 3 != 2]
    missing = [s for s in skills if s not in matching]
    return matching, missing


def _score(seed: int, matching: List[str], missing: List[str]) -> int:
    score = BASE_SCORE + (seed % SCORE_SPREAD)
    total = len(matching) + len(missing)
    if total:
        # nudge towards skill coverage without leaving the demo band
        coverage = len(matching) / total
        score += round((coverage - 0.5) * 10)
    return int(_clamp(score, BASE_SCORE, BASE_SCORE + SCORE_SPREAD - 1))


def build_suggestions(requirement: JobRequirement, missing: List[str]) -> List[str]:
    suggestions = []
    if missing:
        suggestions.append(f"Add evidence of: {', '.join(missing[:6])}, where true.")
    suggestions.append("Quantify impact: team size, users served, growth or cost figures.")
    suggestions.append(f"Tailor the summary to the {requirement.title} role and its key requirements.")
    if requirement.education_level:
        suggestions.append(f"State your education clearly; the role asks for {requirement.education_level}.")
    if requirement.experience_level:
        suggestions.append(f"Highlight years of hands-on work; the role expects {requirement.experience_level}.")
    return suggestions


def demo_score(job_id: int, requirement: JobRequirement) -> ScoreReport:
    """
    Offline score for a job, without a résumé.

    Used for explicit demo mode and as the stand-in when the AI scorer fails.
    The same job id always yields the same report.
    """
    seed = _seed(job_id)
    skills = required_skills(requirement)
    matching, missing = _split_skills(skills, seed)
    score = _score(seed, matching, missing)

    company = f" at {requirement.company_name}" if requirement.company_name else ""
    strengths = [
        "Clear structure with distinct experience and education sections.",
        "Relevant hands-on project work.",
    ]
    if matching:
        strengths.insert(0, f"Covers core skills for the role: {', '.join(matching[:5])}.")

    weaknesses = ["Achievements are not quantified with concrete numbers."]
    if missing:
        weaknesses.insert(0, f"No evidence of: {', '.join(missing[:5])}.")

    return ScoreReport(
        score=score,
        summary=(
            f"Demo assessment for {requirement.title}{company}: estimated fit {score}/100. "
            "Upload a CV for a full AI analysis."
        ),
        strengths=strengths,
        weaknesses=weaknesses,
        matching_skills=matching,
        missing_skills=missing,
        suggestions=build_suggestions(requirement, missing),
        experience_match=(
            f"Expected {requirement.experience_level}; not verified in demo mode."
            if requirement.experience_level else "Not assessed in demo mode."
        ),
        education_match=(
            f"Expected {requirement.education_level}; not verified in demo mode."
            if requirement.education_level else "Not assessed in demo mode."
        ),
        scorer="demo",
    )
