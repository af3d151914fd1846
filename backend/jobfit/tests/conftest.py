import asyncio
import io
import os
import tempfile

os.environ.setdefault("ENV", "test")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="jobfit-uploads-"))

import fitz  # pymupdf
import httpx
import pytest
from docx import Document
from PIL import Image

from jobfit.core import PACKAGE_DIR, ScoreReport
from jobfit.errors import ScorerError
from jobfit.services.catalog import JobCatalog
from jobfit.services.orchestrator import ScoringOrchestrator

RESUME_LINES = [
    "John Smith. Backend developer.",
    "5 years experience with FastAPI and Python.",
    "Worked on projects building REST API services.",
    "Stack: Django, PostgreSQL, Redis and Docker.",
    "Responsible for managing a team of 4 engineers.",
    "Optimized query latency by 40 percent.",
    "Bachelor degree in Computer Science, Hanoi University.",
    "Certificate in AWS cloud architecture.",
]

# a PDF header with no page content: opens badly or yields no text layer
FAKE_PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF"


def make_pdf(lines=RESUME_LINES) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for line in lines:
        page.insert_text((72, y), line, fontsize=10)
        y += 16
    data = doc.tobytes()
    doc.close()
    return data


def make_docx(paragraphs=RESUME_LINES) -> bytes:
    doc = Document()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def make_png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (200, 60), "white").save(buf, format="PNG")
    return buf.getvalue()


def sample_report(score=78) -> ScoreReport:
    return ScoreReport(
        score=score,
        summary="Solid backend profile.",
        strengths=["Python depth"],
        weaknesses=["No Kubernetes"],
        matching_skills=["python", "django"],
        missing_skills=["kubernetes"],
        suggestions=["Mention CI/CD work"],
        experience_match="5 years vs 3 required",
        education_match="Bachelor matches",
    )


class FakeScorer:
    """Scorer double: returns a report, raises, or stalls, and counts calls."""

    def __init__(self, report=None, error=None, delay=0.0):
        self.report = report if report is not None else sample_report()
        self.error = error
        self.delay = delay
        self.calls = []

    async def score(self, data):
        self.calls.append(data)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def catalog():
    return JobCatalog.from_file(PACKAGE_DIR / "data" / "jobs.json")


@pytest.fixture
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def fake_scorer():
    return FakeScorer()


@pytest.fixture
def make_orchestrator(catalog, upload_dir):
    def _make(scorer, timeout=5.0, fallback_delay=0.01, tick_interval=0.01):
        return ScoringOrchestrator(
            scorer=scorer,
            catalog=catalog,
            upload_dir=upload_dir,
            timeout=timeout,
            fallback_delay=fallback_delay,
            tick_interval=tick_interval,
        )

    return _make


@pytest.fixture
async def client(monkeypatch, make_orchestrator, fake_scorer, catalog):
    from jobfit import main

    monkeypatch.setattr(main, "catalog", catalog)
    monkeypatch.setattr(main, "orchestrator", make_orchestrator(fake_scorer))
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def malformed_error():
    return ScorerError("Response is missing 'score'")
