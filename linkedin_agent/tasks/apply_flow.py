"""
Easy Apply as an explicit state machine.

    CONTACT_INFO -> RESUME_UPLOAD -> COVER_LETTER -> QUESTIONS -> SUBMIT -> DONE
                                 (any step) -> FAILED

The modal does not say where it is in that sequence, so after every "Next"
the current step is re-derived from the modal text. Pages can repeat (several
question pages) or be skipped (no cover letter field).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from linkedin_agent.config import DATA_DIR, Settings
from linkedin_agent.errors import ItemError, RunInterrupted, SessionError
from linkedin_agent.log import get_logger
from linkedin_agent.models import Job
from linkedin_agent.retry import retry_call
from linkedin_agent.scraping import ApplyForm, Question

log = get_logger(__name__)

MAX_STEPS = 12


class Step(str, Enum):
    CONTACT_INFO = "contact_info"
    RESUME_UPLOAD = "resume_upload"
    COVER_LETTER = "cover_letter"
    QUESTIONS = "questions"
    SUBMIT = "submit"
    DONE = "done"
    FAILED = "failed"


def classify_step(modal_text: str, can_submit: bool) -> Step:
    if can_submit:
        return Step.SUBMIT
    text = modal_text.lower()
    if "contact info" in text or "phone" in text:
        return Step.CONTACT_INFO
    if "resume" in text or " cv" in text:
        return Step.RESUME_UPLOAD
    if "cover letter" in text:
        return Step.COVER_LETTER
    return Step.QUESTIONS


_QUESTION_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("sponsorship", ("sponsor",)),
    ("work_authorization", ("authorized", "authorization", "legally", "work permit", "visa")),
    ("relocation", ("relocat", "commut", "on-site", "onsite")),
    ("salary", ("salary", "compensation", "ctc", "pay expectation")),
    ("start_date", ("start", "notice period", "available to join")),
    ("experience", ("years", "experience")),
]


def classify_question(label: str) -> str:
    text = label.lower()
    for category, needles in _QUESTION_RULES:
        if any(n in text for n in needles):
            return category
    return "general"


def render_cover_letter(template: str, job: Job, today: date | None = None) -> str:
    values = {
        "{company}": job.company,
        "{position}": job.title,
        "{location}": job.location or "your location",
        "{date}": (today or date.today()).strftime("%B %d, %Y"),
    }
    for placeholder, value in values.items():
        template = template.replace(placeholder, value)
    return template


@dataclass
class ApplyResult:
    submitted: bool
    reason: str
    steps: list[Step] = field(default_factory=list)


class ApplyFlow:
    def __init__(self, form: ApplyForm, settings: Settings, *, sleep: Callable[[float], Any] | None = None) -> None:
        self.form = form
        self.settings = settings
        self._sleep = sleep
        contact = settings.profile.get("contact") or {}
        self.phone = str(contact.get("phone") or "")
        self.address = str(contact.get("address") or "")
        self.cv_path = Path(settings.profile.get("cv_path") or DATA_DIR / "cv.pdf")
        self.answers = settings.answers

    def answer(self, question: Question) -> str:
        return self.answers.get(classify_question(question.label), self.answers["general"])

    def run(self, page: Any, job: Job) -> ApplyResult:
        if not self.form.start(page):
            return ApplyResult(False, "Easy Apply modal did not open")

        steps: list[Step] = []
        reason = ""
        state = self._classify(page)
        while state not in (Step.DONE, Step.FAILED):
            steps.append(state)
            if len(steps) > MAX_STEPS:
                reason = f"gave up after {MAX_STEPS} steps"
                state = Step.FAILED
                break
            try:
                # a submit click may land even when it raises; never click it twice
                state = retry_call(
                    lambda s=state: self._handle(page, job, s),
                    max_attempts=1 if state is Step.SUBMIT else 2,
                    base_delay=1.0,
                    jitter=False,
                    retryable=(Exception,),
                    non_retryable=(SessionError, RunInterrupted),
                    sleep=self._sleep,
                    name=f"apply step {state.value}",
                )
            except (SessionError, RunInterrupted):
                raise
            except Exception as exc:
                reason = f"{steps[-1].value}: {exc}"
                state = Step.FAILED

        if state is Step.FAILED:
            log.warning("Easy Apply failed for %s @ %s (%s)", job.title, job.company, reason)
            self.form.dismiss(page)
            return ApplyResult(False, reason, steps)
        steps.append(Step.DONE)
        return ApplyResult(True, "Submitted via Easy Apply", steps)

    def _classify(self, page: Any) -> Step:
        return classify_step(self.form.modal_text(page), self.form.can_submit(page))

    def _handle(self, page: Any, job: Job, state: Step) -> Step:
        if state is Step.SUBMIT:
            if not self.form.submit(page):
                raise ItemError("Submit button not found")
            return Step.DONE

        if state is Step.CONTACT_INFO:
            self.form.fill_contact(page, self.phone, self.address)
        elif state is Step.RESUME_UPLOAD:
            if self.cv_path.exists():
                self.form.upload_resume(page, str(self.cv_path))
            else:
                log.debug("No CV at %s; relying on the preselected resume", self.cv_path)
        elif state is Step.COVER_LETTER:
            self.form.fill_cover_letter(page, render_cover_letter(self.settings.cover_letter_template, job))
        elif state is Step.QUESTIONS:
            n = self.form.answer_questions(page, self.answer)
            log.debug("Answered %d screening question(s)", n)

        if self.form.can_submit(page):
            return Step.SUBMIT
        if not self.form.next_step(page):
            raise ItemError(f"No way forward from {state.value}")
        return self._classify(page)
