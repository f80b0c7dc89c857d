# hiredesk/services/pricing.py
"""Job pricing catalog: (profile, seniority, work mode[, location]) -> credits."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db, _
from ..models.job import Job, JobStatus
from ..models.pricing import PricingEntry, SENIORITIES, WORK_MODES

log = logging.getLogger(__name__)

DEFAULT_JOB_CREDITS = 5

# Jobs in these states keep their catalog entry alive
BLOCKING_JOB_STATUSES = (JobStatus.ACTIVE.value, JobStatus.PAUSED.value, JobStatus.DRAFT.value)


@dataclass(frozen=True)
class PriceQuote:
    credits: int
    min_salary: Optional[int] = None
    entry_id: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.entry_id is not None

    def to_dict(self) -> dict:
        return {"credits": self.credits, "min_salary": self.min_salary,
                "entry_id": self.entry_id, "found": self.found}


def _default_quote() -> PriceQuote:
    return PriceQuote(credits=current_app.config.get("DEFAULT_JOB_CREDITS", DEFAULT_JOB_CREDITS))


def resolve_cost(profile, seniority, work_mode, location=None) -> PriceQuote:
    """Most specific active entry wins; an incomplete catalog never blocks publication."""
    if not (profile and seniority and work_mode):
        return _default_quote()

    base = PricingEntry.query.filter_by(
        profile=profile, seniority=seniority, work_mode=work_mode, is_active=True,
    ).order_by(PricingEntry.id.asc())

    entry = None
    if location:
        entry = base.filter(PricingEntry.location == location).first()
    if entry is None:
        entry = base.filter(PricingEntry.location.is_(None)).first()
    if entry is None:
        entry = base.first()

    if entry is None:
        log.info("No pricing entry for %s/%s/%s, using default", profile, seniority, work_mode)
        return _default_quote()
    return PriceQuote(credits=entry.credits, min_salary=entry.min_salary, entry_id=entry.id)


def check_salary_floor(quote: PriceQuote, salary_min) -> None:
    if quote.min_salary is None or salary_min is None:
        return
    if int(salary_min) < quote.min_salary:
        raise ValidationError(
            _("The minimum salary for this profile is %(floor)s.", floor=quote.min_salary),
            min_salary=quote.min_salary,
        )


# -----------------
# Catalog management (admin)
# -----------------

def list_entries(profile=None, seniority=None, work_mode=None, is_active=None):
    q = PricingEntry.query
    if profile:
        q = q.filter_by(profile=profile)
    if seniority:
        q = q.filter_by(seniority=seniority)
    if work_mode:
        q = q.filter_by(work_mode=work_mode)
    if is_active is not None:
        q = q.filter_by(is_active=is_active)
    return q.order_by(PricingEntry.profile, PricingEntry.seniority, PricingEntry.work_mode).all()


def _validate(data: dict, partial: bool = False) -> dict:
    clean = {}
    for key in ("profile", "seniority", "work_mode"):
        if key in data:
            val = (data.get(key) or "").strip()
            if not val:
                raise ValidationError(_("%(field)s is required.", field=key))
            clean[key] = val
        elif not partial:
            raise ValidationError(_("%(field)s is required.", field=key))

    if "seniority" in clean and clean["seniority"] not in SENIORITIES:
        raise ValidationError(_("Invalid seniority. Valid values: %(values)s", values=", ".join(SENIORITIES)))
    if "work_mode" in clean and clean["work_mode"] not in WORK_MODES:
        raise ValidationError(_("Invalid work mode. Valid values: %(values)s", values=", ".join(WORK_MODES)))

    if "credits" in data:
        credits = data.get("credits")
        if isinstance(credits, bool) or not isinstance(credits, int) or credits < 0:
            raise ValidationError(_("Credits must be a non-negative integer."))
        clean["credits"] = credits
    elif not partial:
        raise ValidationError(_("%(field)s is required.", field="credits"))

    if "min_salary" in data:
        floor = data.get("min_salary")
        if floor is not None and (isinstance(floor, bool) or not isinstance(floor, int) or floor < 0):
            raise ValidationError(_("Minimum salary must be a non-negative integer."))
        clean["min_salary"] = floor
    if "location" in data:
        clean["location"] = (data.get("location") or "").strip() or None
    if "is_active" in data:
        clean["is_active"] = bool(data.get("is_active"))
    return clean


def _ensure_unique(profile, seniority, work_mode, location, exclude_id=None):
    if location is not None:
        return
    q = PricingEntry.query.filter_by(
        profile=profile, seniority=seniority, work_mode=work_mode, location=None,
    )
    if exclude_id is not None:
        q = q.filter(PricingEntry.id != exclude_id)
    if q.first():
        raise Conflict(_("A pricing entry for this combination already exists."))


def _commit_entry():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(_("A pricing entry for this combination already exists."))


def get_entry(entry_id: int) -> PricingEntry:
    entry = db.session.get(PricingEntry, entry_id)
    if not entry:
        raise NotFound(_("Pricing entry not found."))
    return entry


def create_entry(data: dict) -> PricingEntry:
    clean = _validate(data)
    _ensure_unique(clean["profile"], clean["seniority"], clean["work_mode"], clean.get("location"))
    entry = PricingEntry(**clean)
    db.session.add(entry)
    _commit_entry()
    log.info("Pricing entry %s created: %s/%s/%s = %s credits",
             entry.id, entry.profile, entry.seniority, entry.work_mode, entry.credits)
    return entry


def update_entry(entry_id: int, data: dict) -> PricingEntry:
    entry = get_entry(entry_id)
    clean = _validate(data, partial=True)
    _ensure_unique(
        clean.get("profile", entry.profile),
        clean.get("seniority", entry.seniority),
        clean.get("work_mode", entry.work_mode),
        clean.get("location", entry.location),
        exclude_id=entry.id,
    )
    for key, val in clean.items():
        setattr(entry, key, val)
    _commit_entry()
    return entry


def delete_entry(entry_id: int) -> None:
    entry = get_entry(entry_id)
    q = Job.query.filter(
        Job.profile == entry.profile,
        Job.seniority == entry.seniority,
        Job.work_mode == entry.work_mode,
        Job.status.in_(BLOCKING_JOB_STATUSES),
    )
    if entry.location:
        q = q.filter(Job.location == entry.location)
    blocking = q.order_by(Job.id).all()
    if blocking:
        log.warning("Refused to delete pricing entry %s: %d job(s) reference it", entry.id, len(blocking))
        raise Conflict(
            _("This price is used by %(count)s job(s) that are not closed.", count=len(blocking)),
            jobs=[{"id": j.id, "title": j.title, "status": j.status} for j in blocking],
        )
    db.session.delete(entry)
    db.session.commit()
    log.info("Pricing entry %s deleted", entry_id)
