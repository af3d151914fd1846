from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from jobfit.core import AnalysisRecord

SKILL_VOCABULARY: Tuple[str, ...] = (
    # languages
    "javascript", "typescript", "python", "java", "c#", "c++", "php", "go", "rust", "swift", "kotlin",
    # frameworks
    "react", "vue", "angular", "node.js", "express", "django", "flask", "spring", "laravel",
    # data stores
    "mysql", "postgresql", "mongodb", "redis", "elasticsearch", "sqlite", "oracle",
    # tooling
    "docker", "kubernetes", "jenkins", "git", "github", "gitlab", "aws", "azure", "gcp",
    # web
    "html", "css", "sass", "less", "webpack", "babel", "rest api", "graphql",
    # methodologies
    "agile", "scrum", "devops", "ci/cd", "tdd", "microservices",
    # soft skills
    "quản lý", "lãnh đạo", "giao tiếp", "teamwork", "problem solving", "analytical",
)

EXPERIENCE_KEYWORDS: Tuple[str, ...] = (
    "kinh nghiệm", "experience", "làm việc", "work", "công việc", "job",
    "dự án", "project", "phát triển", "develop", "xây dựng", "build",
)

EDUCATION_KEYWORDS: Tuple[str, ...] = (
    "đại học", "university", "college", "học viện", "trường",
    "cử nhân", "bachelor", "thạc sĩ", "master", "tiến sĩ", "phd", "doctorate",
    "bằng cấp", "degree", "chứng chỉ", "certificate", "khóa học", "course",
)

KEY_POINT_KEYWORDS: Tuple[str, ...] = (
    "thành tích", "achievement", "đạt được", "accomplish", "giải thưởng", "award",
    "chịu trách nhiệm", "responsible", "quản lý", "manage", "phát triển", "develop",
    "tăng trưởng", "growth", "cải thiện", "improve", "tối ưu", "optimize",
)

NO_EXPERIENCE = "No specific experience information found"
NO_EDUCATION = "No specific education information found"

MAX_EXPERIENCE_SENTENCES = 3
MAX_EDUCATION_SENTENCES = 2
MAX_KEY_POINTS = 5

_SKILL_PATTERNS = tuple(
    (term, re.compile(rf"(?<!\w){re.escape(term)}(?!\w)")) for term in SKILL_VOCABULARY
)
_SKILL_PHRASE_RE = re.compile(
    r"\d+\s*(?:năm|years?)\s*(?:kinh nghiệm|experience)\s*(?:với|with|in)\s*([\w.+#/\-]+)",
    re.IGNORECASE,
)
_YEARS_RE = re.compile(r"\d+\s*(?:năm|years?)", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _unique_keep_order(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for x in items:
        k = x.strip().lower()
        if not k or k in seen:
            continue
        seen.add(k)
        out.append(k)
    return out


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def _select(sentences: List[str], keywords: Iterable[str], limit: int) -> List[str]:
    keywords = tuple(keywords)
    picked = [s for s in sentences if any(k in s.lower() for k in keywords)]
    return picked[:limit]


def extract_skills(text: str) -> List[str]:
    low = (text or "").lower()
    found = [term for term, pattern in _SKILL_PATTERNS if pattern.search(low)]

    for m in _SKILL_PHRASE_RE.finditer(text or ""):
        cand = m.group(1).strip(".-/")
        if 3 <= len(cand) <= 19:
            found.append(cand)

    return _unique_keep_order(found)


def extract_experience(text: str) -> str:
    picked = _select(_sentences(text), EXPERIENCE_KEYWORDS, MAX_EXPERIENCE_SENTENCES)
    result = ". ".join(picked).strip()

    years = [re.sub(r"\s+", " ", y) for y in _YEARS_RE.findall(text)]
    if years:
        result = f"{', '.join(years)} of experience. {result}".strip()

    return result or NO_EXPERIENCE


def extract_education(text: str) -> str:
    picked = _select(_sentences(text), EDUCATION_KEYWORDS, MAX_EDUCATION_SENTENCES)
    return ". ".join(picked).strip() or NO_EDUCATION


def extract_key_points(text: str) -> List[str]:
    sentences = [s for s in _sentences(text) if len(s) > 20]

    points = [
        s for s in sentences
        if len(s) < 150 and any(k in s.lower() for k in KEY_POINT_KEYWORDS)
    ]
    if not points:
        points = [s for s in sentences[:MAX_KEY_POINTS] if len(s) < 100]

    return points[:MAX_KEY_POINTS]


def analyze(text: str, source: str) -> AnalysisRecord:
    """Turn raw extracted text into an AnalysisRecord. Never raises on content."""
    clean = clean_text(text)
    return AnalysisRecord(
        extracted_text=clean,
        skills=extract_skills(clean),
        experience_summary=extract_experience(clean),
        education_summary=extract_education(clean),
        key_points=extract_key_points(clean),
        source=source,
    )
