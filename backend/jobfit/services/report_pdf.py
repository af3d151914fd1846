from io import BytesIO
from datetime import datetime, timezone
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from jobfit.core import JobRequirement, ScoreReport
from jobfit.services.report import SCORE_BANDS, score_label

INK = colors.HexColor("#202124")
GREY = colors.HexColor("#5F6368")
RULE = colors.HexColor("#DADCE0")
HAVE = colors.HexColor("#188038")
LACK = colors.HexColor("#C5221F")
WARN_BG = colors.HexColor("#FEF7E0")

MARGIN = 42
MAX_ITEMS = 10


def _text(s) -> str:
    # Paragraph parses a mini XML dialect
    return escape(str(s)) if s else "-"


def _styles() -> Dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("title", parent=base["Title"], fontName="Times-Bold", fontSize=22, textColor=INK, alignment=0),
        "meta": ParagraphStyle("meta", parent=base["BodyText"], fontName="Helvetica", fontSize=9, textColor=GREY),
        "h": ParagraphStyle("h", parent=base["Heading3"], fontName="Helvetica-Bold", fontSize=10, textColor=GREY, spaceBefore=12, spaceAfter=4),
        "body": ParagraphStyle("body", parent=base["BodyText"], fontName="Times-Roman", fontSize=11, textColor=INK, leading=15),
        "score": ParagraphStyle("score", parent=base["BodyText"], fontName="Times-Bold", fontSize=30, leading=34),
    }


def _score_colour(score: int):
    for floor, _label, hexcode in SCORE_BANDS:
        if score >= floor:
            return colors.HexColor(hexcode)
    return LACK


def _bullets(items: List[str], style) -> List[Paragraph]:
    if not items:
        return [Paragraph("-", style)]
    return [Paragraph(_text(item), style, bulletText="•") for item in items[:MAX_ITEMS]]


def _skills_table(report: ScoreReport, style) -> Table:
    rows = [["Matching", "Missing"]]
    have, lack = report.matching_skills[:MAX_ITEMS], report.missing_skills[:MAX_ITEMS]
    for i in range(max(len(have), len(lack), 1)):
        rows.append([
            Paragraph(_text(have[i]) if i < len(have) else "", style),
            Paragraph(_text(lack[i]) if i < len(lack) else "", style),
        ])
    width = (A4[0] - 2 * MARGIN) / 2
    table = Table(rows, colWidths=[width, width])
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("TEXTCOLOR", (0, 0), (0, 0), HAVE),
        ("TEXTCOLOR", (1, 0), (1, 0), LACK),
        ("LINEBELOW", (0, 0), (-1, 0), 0.8, RULE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
    ]))
    return table


def build_pdf(report: ScoreReport, job: Optional[JobRequirement] = None, filename: Optional[str] = None) -> bytes:
    """Printable single-column PDF of a ScoreReport."""
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title="CV Fit Report",
        author="jobfit",
    )
    st = _styles()

    meta = [datetime.now(timezone.utc).strftime("Generated %Y-%m-%d %H:%M UTC")]
    if job is not None:
        meta.append(_text(job.title) + (f" at {_text(job.company_name)}" if job.company_name else ""))
    if filename:
        meta.append(_text(filename))

    story = [
        Paragraph("CV Fit Report", st["title"]),
        Paragraph(" | ".join(meta), st["meta"]),
        Spacer(1, 10),
    ]

    if report.degraded or report.scorer == "demo":
        note = (
            "AI scoring was unavailable. This is a demo estimate, not an analysis of your CV."
            if report.degraded else "Demo mode: estimate made without a CV."
        )
        banner = Table([[Paragraph(note, st["body"])]], colWidths=[A4[0] - 2 * MARGIN])
        banner.setStyle(TableStyle([("BACKGROUND", (0, 0), (-1, -1), WARN_BG), ("LINEBEFORE", (0, 0), (0, -1), 3, colors.HexColor("#E37400"))]))
        story += [banner, Spacer(1, 8)]

    score_style = ParagraphStyle("score_c", parent=st["score"], textColor=_score_colour(report.score))
    story += [
        Paragraph(f"{report.score} <font size='12' color='#5F6368'>/ 100 · {score_label(report.score)}</font>", score_style),
        Paragraph("Summary", st["h"]),
        Paragraph(_text(report.summary), st["body"]),
        KeepTogether([Paragraph("Strengths", st["h"]), *_bullets(report.strengths, st["body"])]),
        KeepTogether([Paragraph("Weaknesses", st["h"]), *_bullets(report.weaknesses, st["body"])]),
        Paragraph("Skills", st["h"]),
        _skills_table(report, st["body"]),
        Paragraph("Experience", st["h"]),
        Paragraph(_text(report.experience_match), st["body"]),
        Paragraph("Education", st["h"]),
        Paragraph(_text(report.education_match), st["body"]),
        KeepTogether([Paragraph("Suggestions", st["h"]), *_bullets(report.suggestions, st["body"])]),
    ]

    def footer(canvas, _doc):
        canvas.saveState()
        canvas.setStrokeColor(RULE)
        canvas.line(MARGIN, MARGIN - 12, A4[0] - MARGIN, MARGIN - 12)
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(GREY)
        canvas.drawRightString(A4[0] - MARGIN, MARGIN - 24, f"Page {canvas.getPageNumber()}")
        canvas.restoreState()

    doc.build(story, onFirstPage=footer, onLaterPages=footer)
    return buf.getvalue()
