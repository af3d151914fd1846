from __future__ import annotations
from datetime import datetime, timezone
from html import escape
from typing import Iterable, Optional

from jobfit.core import JobRequirement, ProgressEvent, ScoreReport, Stage

BAR_WIDTH = 20

# (lower bound, label, accent colour)
SCORE_BANDS = (
    (80, "Excellent fit", "#1E8E3E"),
    (65, "Good fit", "#188038"),
    (50, "Partial fit", "#E37400"),
    (0, "Weak fit", "#C5221F"),
)

REPORT_CSS = """
body { font-family: Georgia, 'Times New Roman', serif; background: #F6F4EF; color: #202124; margin: 0; }
main { max-width: 860px; margin: 32px auto; padding: 0 20px; }
header { border-bottom: 2px solid #202124; padding-bottom: 12px; }
header h1 { margin: 0; font-size: 26px; }
.meta { color: #5F6368; font-size: 13px; margin-top: 4px; }
.notice { background: #FEF7E0; border-left: 4px solid #E37400; padding: 10px 14px; margin-top: 16px; }
.score { display: flex; align-items: baseline; gap: 12px; margin-top: 20px; }
.score b { font-size: 48px; }
.meter { height: 8px; background: #E0DDD5; border-radius: 4px; overflow: hidden; }
.meter span { display: block; height: 100%; }
section { margin-top: 22px; }
section h2 { font-size: 15px; text-transform: uppercase; letter-spacing: 0.06em; color: #5F6368; margin: 0 0 6px; }
.cols { display: grid; grid-template-columns: 1fr 1fr; gap: 24px; }
.skill { display: inline-block; margin: 3px 4px 0 0; padding: 2px 8px; border: 1px solid currentColor; font-size: 13px; }
.have { color: #188038; }
.lack { color: #C5221F; }
@media print { body { background: #fff; } .notice { border-left-color: #000; } }
@media (max-width: 700px) { .cols { grid-template-columns: 1fr; } }
"""


def render_progress(event: ProgressEvent, width: int = BAR_WIDTH) -> str:
    """One-line text rendering of a progress event, e.g. for logs or a terminal client."""
    filled = round(width * event.percent / 100)
    bar = "#" * filled + "-" * (width - filled)
    marker = "!" if event.stage == Stage.FAILED else " "
    return f"[{bar}]{marker}{event.percent:3d}% {event.stage.value}: {event.message}"


def _band(score: int):
    for floor, label, colour in SCORE_BANDS:
        if score >= floor:
            return label, colour
    return SCORE_BANDS[-1][1:]


def score_label(score: int) -> str:
    return _band(score)[0]


def _items(items: Iterable[str]) -> str:
    rows = [f"<li>{escape(x)}</li>" for x in items]
    return f"<ul>{''.join(rows)}</ul>" if rows else "<p>-</p>"


def _skills(items: Iterable[str], cls: str) -> str:
    return "".join(f'<span class="skill {cls}">{escape(x)}</span>' for x in items) or "<p>-</p>"


def _section(title: str, body: str) -> str:
    return f"<section><h2>{escape(title)}</h2>{body}</section>"


def render_html_report(report: ScoreReport, job: Optional[JobRequirement] = None, filename: Optional[str] = None) -> str:
    """Standalone, printable HTML page for one ScoreReport. All report text is escaped."""
    label, colour = _band(report.score)

    meta = [datetime.now(timezone.utc).strftime("Generated %Y-%m-%d %H:%M UTC")]
    if job is not None:
        meta.append(escape(job.title) + (f" at {escape(job.company_name)}" if job.company_name else ""))
    if filename:
        meta.append(escape(filename))

    notice = ""
    if report.degraded:
        notice = '<div class="notice">AI scoring was unavailable. This is a demo estimate, not an analysis of your CV.</div>'
    elif report.scorer == "demo":
        notice = '<div class="notice">Demo mode: estimate made without a CV.</div>'

    body = "".join([
        _section("Summary", f"<p>{escape(report.summary) or '-'}</p>"),
        '<div class="cols">',
        _section("Strengths", _items(report.strengths)),
        _section("Weaknesses", _items(report.weaknesses)),
        "</div>",
        '<div class="cols">',
        _section("Matching skills", _skills(report.matching_skills, "have")),
        _section("Missing skills", _skills(report.missing_skills, "lack")),
        "</div>",
        _section("Experience", f"<p>{escape(report.experience_match) or '-'}</p>"),
        _section("Education", f"<p>{escape(report.education_match) or '-'}</p>"),
        _section("Suggestions", _items(report.suggestions)),
    ])

    return (
        "<!doctype html>\n<html lang=\"en\">\n<head>\n"
        '<meta charset="utf-8"/>\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1"/>\n'
        "<title>CV Fit Report</title>\n"
        f"<style>{REPORT_CSS}</style>\n</head>\n<body>\n<main>\n"
        f"<header><h1>CV Fit Report</h1><div class=\"meta\">{' · '.join(meta)}</div></header>\n"
        f"{notice}\n"
        f'<div class="score"><b style="color:{colour}">{report.score}</b><span>/ 100 · {label}</span></div>\n'
        f'<div class="meter"><span style="width:{report.score}%;background:{colour}"></span></div>\n'
        f"{body}\n</main>\n</body>\n</html>\n"
    )
