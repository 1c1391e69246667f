"""
Resume renderer: turns a user's profile snapshot into a .docx file.

The output depends only on its inputs; the "Generated ..." line and the
document timestamps come from the `generated_at` argument.
"""
import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from docx import Document
from docx.shared import Pt

from resumegen.errors import RenderError
from resumegen.utils.logger import logger


@dataclass(frozen=True)
class TemplateStyle:
    font_name: str
    font_size: int
    show_summaries: bool = True


TEMPLATES: Dict[str, TemplateStyle] = {
    "default": TemplateStyle(font_name="Calibri", font_size=11),
    "compact": TemplateStyle(font_name="Arial", font_size=10, show_summaries=False),
}


@dataclass
class ExperienceEntry:
    role: str
    company: str
    start: str = ""
    end: str = ""
    summary: str = ""


@dataclass
class ActivityEntry:
    job_title: str
    company_name: str
    applied_on: Optional[datetime] = None


@dataclass
class ResumeContent:
    name: str
    email: str
    headline: str = ""
    skills: List[str] = field(default_factory=list)
    experience: List[ExperienceEntry] = field(default_factory=list)
    recent_activity: List[ActivityEntry] = field(default_factory=list)


def safe_json_loads(json_str: Optional[str], default=None):
    """Safely parse JSON string with error handling"""
    if not json_str:
        return default if default is not None else []
    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"JSON deserialization failed: {e}. Returning default value.")
        return default if default is not None else []


def build_resume_content(user, profile, recent_applications: Sequence[Any]) -> ResumeContent:
    """Compose the structured resume from ORM rows (profile may be None)"""
    skills = safe_json_loads(profile.skills if profile else None)
    raw_experience = safe_json_loads(profile.experience if profile else None)

    experience = []
    for item in raw_experience:
        if not isinstance(item, dict):
            logger.warning(f"Skipping malformed experience entry: {item!r}")
            continue
        experience.append(ExperienceEntry(
            role=item.get("role", ""),
            company=item.get("company", ""),
            start=item.get("start", ""),
            end=item.get("end", ""),
            summary=item.get("summary", ""),
        ))

    activity = [
        ActivityEntry(job_title=a.job_title, company_name=a.company_name, applied_on=a.created_at)
        for a in recent_applications
    ]

    return ResumeContent(
        name=user.name or "Unnamed",
        email=user.email,
        headline=(profile.headline if profile else "") or "",
        skills=[str(s) for s in skills],
        experience=experience,
        recent_activity=activity,
    )


@contextmanager
def _docx_session() -> Iterator[Tuple[Any, BytesIO]]:
    """Document + output buffer, released on every exit path"""
    buffer = BytesIO()
    document = Document()
    try:
        yield document, buffer
    finally:
        buffer.close()


class DocumentRenderer:
    """Renders resumes as .docx bytes. Safe to call from a worker thread."""

    extension = "docx"

    def render(
        self,
        user,
        profile,
        recent_applications: Sequence[Any],
        template: str = "default",
        generated_at: Optional[datetime] = None,
    ) -> bytes:
        generated_at = generated_at or datetime.now(timezone.utc)
        try:
            content = build_resume_content(user, profile, recent_applications)
            return self.render_content(content, template, generated_at)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"Rendering failed: {type(exc).__name__}: {exc}") from exc

    def render_content(self, content: ResumeContent, template: str, generated_at: datetime) -> bytes:
        style = TEMPLATES.get(template)
        if style is None:
            raise RenderError(f"Unknown template: {template}")

        with _docx_session() as (doc, buffer):
            normal = doc.styles["Normal"].font
            normal.name = style.font_name
            normal.size = Pt(style.font_size)

            props = doc.core_properties
            props.title = f"Resume - {content.name}"
            props.author = "ResumeGen"
            props.created = generated_at
            props.modified = generated_at

            doc.add_heading(content.name, level=0)
            doc.add_paragraph(content.email)

            doc.add_heading("Headline", level=1)
            doc.add_paragraph(content.headline)

            doc.add_heading("Skills", level=1)
            for skill in content.skills:
                doc.add_paragraph(skill, style="List Bullet")

            doc.add_heading("Experience", level=1)
            for entry in content.experience:
                p = doc.add_paragraph()
                p.add_run(entry.role).bold = True
                p.add_run(f" - {entry.company}")
                if entry.start or entry.end:
                    p.add_run(f" ({entry.start} - {entry.end or 'Present'})")
                if style.show_summaries and entry.summary:
                    doc.add_paragraph(entry.summary)

            doc.add_heading("Recent applications", level=1)
            for activity in content.recent_activity:
                line = f"{activity.job_title} - {activity.company_name}"
                if activity.applied_on:
                    line += f" ({activity.applied_on:%Y-%m-%d})"
                doc.add_paragraph(line)

            footer = doc.add_paragraph()
            run = footer.add_run(f"Generated {generated_at:%Y-%m-%d %H:%M} UTC")
            run.italic = True
            run.font.size = Pt(8)

            doc.save(buffer)
            return buffer.getvalue()
