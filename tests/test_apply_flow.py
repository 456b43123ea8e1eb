"""Tests for the Easy Apply state machine."""
from __future__ import annotations

from datetime import date

import pytest

from fakes import FakeForm, make_job
from linkedin_agent.scraping import Question
from linkedin_agent.tasks.apply_flow import (
    MAX_STEPS,
    ApplyFlow,
    Step,
    classify_question,
    classify_step,
    render_cover_letter,
)


def _flow(form: FakeForm, settings) -> ApplyFlow:
    return ApplyFlow(form, settings, sleep=lambda s: None)


@pytest.mark.parametrize(
    ("text", "can_submit", "expected"),
    [
        ("Contact info: Mobile phone number", False, Step.CONTACT_INFO),
        ("Upload resume (PDF, DOCX)", False, Step.RESUME_UPLOAD),
        ("Cover letter (optional)", False, Step.COVER_LETTER),
        ("Additional questions", False, Step.QUESTIONS),
        ("Contact info", True, Step.SUBMIT),
    ],
)
def test_classify_step(text: str, can_submit: bool, expected: Step) -> None:
    assert classify_step(text, can_submit) is expected


@pytest.mark.parametrize(
    ("label", "category"),
    [
        ("Will you now or in the future require sponsorship?", "sponsorship"),
        ("Are you legally authorized to work in Germany?", "work_authorization"),
        ("Are you willing to relocate?", "relocation"),
        ("What are your salary expectations?", "salary"),
        ("When can you start?", "start_date"),
        ("How many years of experience do you have with Django?", "experience"),
        ("Do you have a driver's licence?", "general"),
    ],
)
def test_classify_question(label: str, category: str) -> None:
    assert classify_question(label) == category


def test_render_cover_letter_fills_placeholders() -> None:
    job = make_job("1", title="Backend Engineer", company="Acme", location="")
    text = render_cover_letter("{date}: {position} at {company} in {location}", job, date(2026, 10, 18))
    assert text == "October 18, 2026: Backend Engineer at Acme in your location"


def test_walks_every_page_and_submits(settings) -> None:
    form = FakeForm()
    job = make_job("1")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is True
    assert result.steps == [Step.CONTACT_INFO, Step.RESUME_UPLOAD, Step.QUESTIONS, Step.SUBMIT, Step.DONE]
    assert form.submitted == ["1"]
    assert form.contact == ("555-0100", "1 Main St")
    assert dict(form.answers) == {
        "How many years of Python experience do you have?": "3",
        "Do you require visa sponsorship?": "No",
    }


def test_profile_answers_override_defaults(settings) -> None:
    settings.profile["answers"] = {"experience": 7}
    form = FakeForm()
    job = make_job("1")
    form.open_job(None, job)

    _flow(form, settings).run(None, job)

    assert form.answers[0][1] == "7"


def test_cover_letter_page_uses_profile_template(settings) -> None:
    settings.profile["cover_letter_template"] = "Dear {company} team, re {position}"
    form = FakeForm(["contact info phone", "cover letter", "review your application"])
    job = make_job("1", company="Globex", title="Data Engineer")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is True
    assert form.cover_letters == ["Dear Globex team, re Data Engineer"]


def test_transient_step_failure_is_retried(settings) -> None:
    form = FakeForm(flaky_next=1)
    job = make_job("1")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is True
    assert form.dismissed == 0


def test_submit_error_is_not_clicked_again(settings) -> None:
    form = FakeForm(submit_raises=True)
    job = make_job("1")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is False
    assert result.reason.startswith("submit")
    assert result.steps[-1] is Step.SUBMIT
    assert form.submitted == ["1"]
    assert form.dismissed == 1


def test_dead_end_fails_and_dismisses(settings) -> None:
    form = FakeForm(["contact info phone"])
    job = make_job("1")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is False
    assert result.reason.startswith("contact_info")
    assert form.dismissed == 1
    assert form.submitted == []


def test_endless_question_pages_give_up(settings) -> None:
    form = FakeForm(["additional questions"] * (MAX_STEPS + 5))
    job = make_job("1")
    form.open_job(None, job)

    result = _flow(form, settings).run(None, job)

    assert result.submitted is False
    assert "gave up" in result.reason
    assert form.dismissed == 1


def test_answer_falls_back_to_general(settings) -> None:
    flow = _flow(FakeForm(), settings)
    assert flow.answer(Question("Do you have a driver's licence?", "radio", ["Yes", "No"])) == "Yes"
