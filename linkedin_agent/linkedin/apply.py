"""LinkedIn job detail page and the Easy Apply modal."""
from __future__ import annotations

import time
from typing import Any, Callable

from linkedin_agent.linkedin.dom import click_first_visible, first_visible, navigate, text_of, visible
from linkedin_agent.log import get_logger
from linkedin_agent.models import Job
from linkedin_agent.scraping import ApplyForm, Availability, Question

log = get_logger(__name__)

_MODAL = ".jobs-easy-apply-modal, .artdeco-modal"


class LinkedInApplyForm(ApplyForm):
    def open_job(self, page: Any, job: Job) -> Availability:
        navigate(page, job.url)
        time.sleep(2)
        if visible(page.locator(".job-view-layout__expired-message, .jobs-details-top-card__apply-error")):
            return Availability.EXPIRED
        if visible(page.locator(".jobs-apply-button--applied, .artdeco-inline-feedback--success")):
            return Availability.ALREADY_APPLIED
        if visible(page.locator(".jobs-apply-button[data-easy-apply-id], button.jobs-apply-button:has-text('Easy Apply')")):
            return Availability.EASY_APPLY
        if visible(page.locator(".jobs-apply-button")):
            return Availability.EXTERNAL
        return Availability.UNAVAILABLE

    def start(self, page: Any) -> bool:
        if not click_first_visible(page, [".jobs-apply-button[data-easy-apply-id]", "button.jobs-apply-button"]):
            return False
        try:
            page.wait_for_selector(_MODAL, timeout=10_000)
        except Exception:
            return False
        return True

    def modal_text(self, page: Any) -> str:
        return text_of(page, _MODAL).lower()

    def can_submit(self, page: Any) -> bool:
        return visible(page.get_by_role("button", name="Submit application"))

    def fill_contact(self, page: Any, phone: str, address: str) -> None:
        modal = page.locator(_MODAL)
        if phone:
            field = first_visible(modal, ["input[id*='phoneNumber']", "input[name*='phone']", "input[type='tel']"])
            if field is not None and not field.input_value():
                field.fill(phone)
        if address:
            field = first_visible(modal, ["input[id*='address']", "input[name*='address']", "input[id*='city']"])
            if field is not None and not field.input_value():
                field.fill(address)

    def upload_resume(self, page: Any, path: str) -> bool:
        fi = page.locator(f"{_MODAL} input[type='file']")
        if fi.count() == 0:
            # A previously uploaded resume is often preselected.
            return visible(page.locator(".jobs-document-upload-redesign-card__container--selected"))
        fi.first.set_input_files(path)
        time.sleep(1)
        return True

    def fill_cover_letter(self, page: Any, text: str) -> bool:
        ta = page.locator(f"{_MODAL} textarea")
        if not visible(ta):
            return False
        ta.first.fill(text[:3000])
        return True

    def answer_questions(self, page: Any, answer: Callable[[Question], str]) -> int:
        answered = 0
        groups = page.locator(f"{_MODAL} .jobs-easy-apply-form-section__grouping, {_MODAL} .fb-dash-form-element")
        for i in range(groups.count()):
            group = groups.nth(i)
            label = text_of(group, "label, legend, .fb-dash-form-element__label")
            if not label:
                continue
            select = group.locator("select")
            radios = group.locator("input[type='radio']")
            text_input = group.locator("input[type='text'], input[type='number'], textarea")
            if select.count():
                options = tuple(o.strip() for o in select.first.locator("option").all_inner_texts())
                value = answer(Question(label, "select", options))
                match = next((o for o in options if o.lower() == value.lower()), None)
                match = match or next((o for o in options if value.lower() in o.lower()), None)
                if match:
                    select.first.select_option(label=match)
                    answered += 1
            elif radios.count():
                options = tuple(group.locator("label").all_inner_texts())
                value = answer(Question(label, "radio", options))
                target = group.locator(f"label:has-text('{value}')")
                if visible(target):
                    target.first.click()
                    answered += 1
            elif text_input.count():
                if text_input.first.input_value():
                    continue
                text_input.first.fill(answer(Question(label, "text")))
                answered += 1
        return answered

    def next_step(self, page: Any) -> bool:
        nxt = page.get_by_role("button", name="Next").or_(page.get_by_role("button", name="Review"))
        if not visible(nxt):
            nxt = page.get_by_role("button", name="Continue to next step").or_(
                page.get_by_role("button", name="Review your application")
            )
        if not visible(nxt):
            return False
        nxt.first.click()
        time.sleep(1.5)
        return True

    def submit(self, page: Any) -> bool:
        btn = page.get_by_role("button", name="Submit application")
        if not visible(btn):
            return False
        btn.first.click()
        time.sleep(2)
        click_first_visible(page, ["button[aria-label='Dismiss']", "button:has-text('Done')"], timeout=2000)
        return True

    def dismiss(self, page: Any) -> None:
        if click_first_visible(page, ["button[aria-label='Dismiss']"], timeout=1500):
            click_first_visible(page, ["button[data-control-name='discard_application_confirm_btn']", "button:has-text('Discard')"], timeout=1500)
