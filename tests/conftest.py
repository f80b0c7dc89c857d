"""Shared fixtures: an app on in-memory SQLite, a header-authenticated client and model factories."""

import itertools
from datetime import datetime, timedelta

import pytest
from flask import g

from hiredesk import create_app
from hiredesk.config import TestingConfig
from hiredesk.extensions import db
from hiredesk.models import (
    Application,
    Candidate,
    CompanyProfile,
    Job,
    JobAssignment,
    PricingEntry,
    User,
)

_seq = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class ApiClient:
    """Test client that acts as ``user`` through the identity header."""

    def __init__(self, client, header):
        self._client = client
        self._header = header

    def open(self, method, url, user=None, **kwargs):
        # the test's app context is shared with every request; drop the cached identity
        g.pop("_login_user", None)
        headers = dict(kwargs.pop("headers", {}) or {})
        if user is not None:
            headers[self._header] = str(user.id)
        return self._client.open(url, method=method, headers=headers, **kwargs)

    def get(self, url, user=None, **kwargs):
        return self.open("GET", url, user=user, **kwargs)

    def post(self, url, user=None, **kwargs):
        return self.open("POST", url, user=user, **kwargs)

    def patch(self, url, user=None, **kwargs):
        return self.open("PATCH", url, user=user, **kwargs)

    def put(self, url, user=None, **kwargs):
        return self.open("PUT", url, user=user, **kwargs)

    def delete(self, url, user=None, **kwargs):
        return self.open("DELETE", url, user=user, **kwargs)


@pytest.fixture
def api(app):
    return ApiClient(app.test_client(), app.config["IDENTITY_HEADER"])


@pytest.fixture
def make_user(app):
    def _make(role="company", credits=0, **kw):
        n = next(_seq)
        user = User(
            name=kw.pop("name", f"{role.title()} {n}"),
            email=kw.pop("email", f"{role}{n}@example.com"),
            role=role,
            credits=credits,
            **kw,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin")


@pytest.fixture
def company(make_user):
    user = make_user("company", name="Acme HR")
    db.session.add(CompanyProfile(user_id=user.id, company_name="Acme S.A.", logo_url="https://cdn.example.com/acme.png"))
    db.session.commit()
    return user


@pytest.fixture
def recruiter(make_user):
    return make_user("recruiter", name="Rita Recruiter")


@pytest.fixture
def specialist(make_user):
    return make_user("specialist", name="Sam Specialist", specialty="Backend")


@pytest.fixture
def make_job(app):
    def _make(owner=None, status="draft", **kw):
        fields = dict(
            title="Backend Engineer",
            company="Acme S.A.",
            location="Av. Reforma 100, Ciudad de México, CDMX",
            profile="Backend",
            seniority="Sr",
            work_mode="remote",
        )
        fields.update(kw)
        job = Job(user_id=owner.id if owner else None, status=status, **fields)
        if status != "draft" and job.published_at is None:
            job.published_at = datetime.utcnow()
            job.editable_until = job.published_at + timedelta(hours=4)
        db.session.add(job)
        db.session.commit()
        return job
    return _make


@pytest.fixture
def make_candidate(app):
    def _make(**kw):
        n = next(_seq)
        cand = Candidate(
            full_name=kw.pop("full_name", f"Candidate {n}"),
            email=kw.pop("email", f"cand{n}@example.com"),
            profile=kw.pop("profile", "Backend"),
            **kw,
        )
        db.session.add(cand)
        db.session.commit()
        return cand
    return _make


@pytest.fixture
def make_application(app):
    def _make(job, status="pending", candidate=None, **kw):
        n = next(_seq)
        row = Application(
            job_id=job.id,
            candidate_id=candidate.id if candidate else None,
            candidate_name=candidate.full_name if candidate else kw.pop("candidate_name", f"Applicant {n}"),
            candidate_email=candidate.email if candidate else kw.pop("candidate_email", f"applicant{n}@example.com"),
            status=status,
            **kw,
        )
        db.session.add(row)
        db.session.commit()
        return row
    return _make


@pytest.fixture
def make_assignment(app):
    def _make(job, recruiter=None, specialist=None, **kw):
        row = JobAssignment(
            job_id=job.id,
            recruiter_id=recruiter.id if recruiter else None,
            specialist_id=specialist.id if specialist else None,
            sent_to_specialist=[],
            sent_to_company=[],
            **kw,
        )
        db.session.add(row)
        db.session.commit()
        return row
    return _make


@pytest.fixture
def make_price(app):
    def _make(credits=10, profile="Backend", seniority="Sr", work_mode="remote", **kw):
        entry = PricingEntry(profile=profile, seniority=seniority, work_mode=work_mode, credits=credits, **kw)
        db.session.add(entry)
        db.session.commit()
        return entry
    return _make
