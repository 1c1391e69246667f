"""
Tests for the python-docx resume renderer.
"""

import json
from datetime import datetime, timezone
from io import BytesIO
from types import SimpleNamespace

import pytest
from docx import Document

from resumegen.errors import RenderError
from resumegen.services.renderer import DocumentRenderer, _docx_session, build_resume_content

GENERATED_AT = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def user():
    return SimpleNamespace(id=7, name="Dana Rivera", email="dana@example.com")


@pytest.fixture
def profile():
    return SimpleNamespace(
        headline="Warehouse lead with five years of experience",
        skills=json.dumps(["Forklift", "Inventory control"]),
        experience=json.dumps([
            {"role": "Shift Lead", "company": "Acme Co", "start": "2021", "end": "",
             "summary": "Ran a team of eight pickers."},
        ]),
    )


@pytest.fixture
def applications():
    return [
        SimpleNamespace(job_title="Warehouse Associate", company_name="Northwind",
                        created_at=datetime(2026, 10, 3, tzinfo=timezone.utc)),
        SimpleNamespace(job_title="General Labor", company_name="Contoso",
                        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc)),
    ]


def paragraph_texts(data: bytes):
    return [p.text for p in Document(BytesIO(data)).paragraphs]


def test_render_includes_every_section(user, profile, applications):
    data = DocumentRenderer().render(user, profile, applications, "default", GENERATED_AT)

    texts = paragraph_texts(data)
    assert "Dana Rivera" in texts
    assert "dana@example.com" in texts
    assert "Warehouse lead with five years of experience" in texts
    assert "Forklift" in texts and "Inventory control" in texts
    assert "Shift Lead - Acme Co (2021 - Present)" in texts
    assert "Ran a team of eight pickers." in texts
    assert "Warehouse Associate - Northwind (2026-10-03)" in texts
    assert "General Labor - Contoso (2026-10-01)" in texts
    assert texts[-1] == "Generated 2026-10-19 08:30 UTC"


def test_compact_template_omits_experience_summaries(user, profile, applications):
    data = DocumentRenderer().render(user, profile, applications, "compact", GENERATED_AT)

    texts = paragraph_texts(data)
    assert "Shift Lead - Acme Co (2021 - Present)" in texts
    assert "Ran a team of eight pickers." not in texts


def test_same_inputs_render_same_content(user, profile, applications):
    renderer = DocumentRenderer()
    first = renderer.render(user, profile, applications, "default", GENERATED_AT)
    second = renderer.render(user, profile, applications, "default", GENERATED_AT)

    assert paragraph_texts(first) == paragraph_texts(second)


def test_document_timestamps_follow_generated_at(user, profile, applications):
    data = DocumentRenderer().render(user, profile, applications, "default", GENERATED_AT)

    props = Document(BytesIO(data)).core_properties
    assert props.created.replace(tzinfo=timezone.utc) == GENERATED_AT
    assert props.title == "Resume - Dana Rivera"


def test_unknown_template_raises_render_error(user, profile, applications):
    with pytest.raises(RenderError, match="Unknown template"):
        DocumentRenderer().render(user, profile, applications, "glossy", GENERATED_AT)


def test_unexpected_failures_are_wrapped(profile, applications):
    broken_user = SimpleNamespace(name="No Email")

    with pytest.raises(RenderError, match="AttributeError"):
        DocumentRenderer().render(broken_user, profile, applications, "default", GENERATED_AT)


def test_missing_profile_renders_empty_sections(user):
    data = DocumentRenderer().render(user, None, [], "default", GENERATED_AT)

    texts = paragraph_texts(data)
    assert "Skills" in texts
    assert "Experience" in texts


def test_malformed_profile_json_is_tolerated(user):
    profile = SimpleNamespace(headline=None, skills="not json", experience=json.dumps(["oops", {"role": "Cook", "company": "Diner"}]))

    content = build_resume_content(user, profile, [])

    assert content.skills == []
    assert content.headline == ""
    assert [e.role for e in content.experience] == ["Cook"]


def test_docx_session_releases_buffer_on_error():
    with pytest.raises(RuntimeError):
        with _docx_session() as (_doc, buffer):
            captured = buffer
            raise RuntimeError("boom")

    assert captured.closed
