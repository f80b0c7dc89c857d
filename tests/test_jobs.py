from datetime import datetime, timedelta

import pytest

from hiredesk.errors import Forbidden, InsufficientCredits, InvalidTransition, NotFound, ValidationError
from hiredesk.extensions import db
from hiredesk.models.job import Job
from hiredesk.models.ledger import CreditTransaction
from hiredesk.models.notification import Notification
from hiredesk.services import jobs, ledger

T0 = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def draft(company, make_job):
    return make_job(company, status="draft", salary_min=30000, salary_max=45000)


def _reload(job):
    db.session.expire_all()
    return db.session.get(Job, job.id)


class TestCreate:

    def test_create_draft(self, company):
        job = jobs.create_job(company, {"title": "Data Analyst", "profile": "Data", "seniority": "Jr",
                                        "work_mode": "hybrid"})
        assert job.status == "draft"
        assert job.credit_cost == 0
        assert job.company == "Acme S.A."  # from the company profile
        assert job.user_id == company.id
        assert job.editable_until is None

    def test_candidates_cannot_post(self, make_user):
        with pytest.raises(Forbidden):
            jobs.create_job(make_user("candidate"), {"title": "x", "company": "y"})

    def test_salary_range(self, company):
        with pytest.raises(ValidationError):
            jobs.create_job(company, {"title": "x", "salary_min": 50000, "salary_max": 40000})

    def test_salary_floor_from_catalog(self, company, make_price):
        make_price(credits=10, min_salary=40000)
        with pytest.raises(ValidationError):
            jobs.create_job(company, {"title": "x", "profile": "Backend", "seniority": "Sr",
                                      "work_mode": "remote", "salary_min": 30000})

    def test_invalid_seniority(self, company):
        with pytest.raises(ValidationError):
            jobs.create_job(company, {"title": "x", "seniority": "Guru"})

    def test_create_and_publish(self, company):
        ledger.credit(company.id, 5, "seed")
        job = jobs.create_job(company, {"title": "QA"}, publish_now=True, now=T0)
        assert job.status == "active"
        assert job.credit_cost == 5
        assert ledger.balance(company.id) == 0


class TestPublish:

    def test_company_pays_catalog_price(self, company, draft, make_price):
        make_price(credits=12)
        ledger.credit(company.id, 20, "seed")

        job = jobs.publish_job(company, draft.id, now=T0)

        assert job.status == "active"
        assert job.credit_cost == 12
        assert job.published_at == T0
        assert job.editable_until == T0 + timedelta(hours=4)
        assert ledger.balance(company.id) == 8
        spend = CreditTransaction.query.filter_by(user_id=company.id, type="spend").one()
        assert spend.job_id == job.id
        assert spend.amount == -12

    def test_insufficient_balance_keeps_draft(self, company, draft):
        ledger.credit(company.id, 2, "seed")
        with pytest.raises(InsufficientCredits):
            jobs.publish_job(company, draft.id, now=T0)

        job = _reload(draft)
        assert job.status == "draft"
        assert job.published_at is None
        assert ledger.balance(company.id) == 2
        assert CreditTransaction.query.filter_by(type="spend").count() == 0

    def test_admin_publishes_for_free(self, admin, company, draft, make_price):
        make_price(credits=10)
        job = jobs.publish_job(admin, draft.id, now=T0)
        assert job.status == "active"
        assert job.credit_cost == 10
        assert ledger.balance(company.id) == 0
        assert CreditTransaction.query.count() == 0

    def test_admins_are_notified(self, admin, company, draft):
        ledger.credit(company.id, 5, "seed")
        jobs.publish_job(company, draft.id, now=T0)
        note = Notification.query.filter_by(user_id=admin.id).one()
        assert note.type == "job_published"
        assert note.meta["job_id"] == draft.id

    def test_only_drafts(self, admin, company, make_job):
        job = make_job(company, status="active")
        with pytest.raises(InvalidTransition):
            jobs.publish_job(admin, job.id)

    def test_other_company_cannot_publish(self, make_user, draft):
        with pytest.raises(Forbidden):
            jobs.publish_job(make_user("company"), draft.id)

    def test_publish_sets_expiry(self, admin, draft):
        job = jobs.publish_job(admin, draft.id, now=T0, expires_at="2026-04-01T00:00:00Z")
        assert job.expires_at == datetime(2026, 4, 1)

    def test_publish_rejects_past_expiry(self, admin, draft):
        with pytest.raises(ValidationError):
            jobs.publish_job(admin, draft.id, now=T0, expires_at=T0 - timedelta(days=1))
        assert _reload(draft).status == "draft"


class TestEditWindow:

    @pytest.fixture
    def published(self, admin, draft):
        return jobs.publish_job(admin, draft.id, now=T0)

    def test_edit_inside_window(self, company, published):
        job = jobs.update_job(company, published.id, {"title": "Senior Backend"},
                              now=T0 + timedelta(hours=3, minutes=59))
        assert job.title == "Senior Backend"

    def test_content_edit_after_window_rejected(self, company, published):
        late = T0 + timedelta(hours=4, seconds=1)
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"title": "Too late"}, now=late)
        assert _reload(published).title == "Backend Engineer"

    def test_status_change_after_window_allowed(self, company, published):
        late = T0 + timedelta(hours=4, seconds=1)
        job = jobs.update_job(company, published.id, {"status": "paused"}, now=late)
        assert job.status == "paused"

    def test_window_end_is_exclusive(self, company, published):
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"title": "x"}, now=T0 + timedelta(hours=4))

    def test_pricing_fields_frozen_after_publish(self, company, published):
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"seniority": "Jr"}, now=T0)

    def test_location_frozen_after_publish(self, company, published):
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"location": "Monterrey"}, now=T0)
        assert _reload(published).location == "Av. Reforma 100, Ciudad de México, CDMX"

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("true", True), (1, True)])
    def test_confidential_flag_parsed(self, company, published, raw, expected):
        job = jobs.update_job(company, published.id, {"is_confidential": raw}, now=T0)
        assert job.is_confidential is expected

    def test_confidential_flag_rejects_garbage(self, company, published):
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"is_confidential": "maybe"}, now=T0)

    def test_bad_status_keeps_content(self, company, published):
        with pytest.raises(ValidationError):
            jobs.update_job(company, published.id, {"title": "New", "status": "closed"}, now=T0)
        job = _reload(published)
        assert (job.title, job.status) == ("Backend Engineer", "active")

    def test_illegal_status_keeps_content(self, company, published):
        with pytest.raises(InvalidTransition):
            jobs.update_job(company, published.id, {"title": "New", "status": "draft"}, now=T0)
        assert _reload(published).title == "Backend Engineer"

    def test_content_and_status_together(self, company, published):
        jobs.update_job(company, published.id,
                        {"title": "New", "status": "closed", "closed_reason": "cancelled"}, now=T0)
        job = _reload(published)
        assert (job.title, job.status, job.closed_reason) == ("New", "closed", "cancelled")

    def test_drafts_always_editable(self, company, draft):
        job = jobs.update_job(company, draft.id, {"seniority": "Jr", "location": "Monterrey"},
                              now=T0 + timedelta(days=30))
        assert job.seniority == "Jr"

    def test_unknown_fields_rejected(self, company, draft):
        with pytest.raises(ValidationError):
            jobs.update_job(company, draft.id, {"credit_cost": 0})


class TestStatus:

    @pytest.fixture
    def active(self, company, make_job):
        return make_job(company, status="active", credit_cost=5)

    def test_pause_and_resume(self, company, active):
        assert jobs.change_status(company, active.id, "paused").status == "paused"
        assert jobs.change_status(company, active.id, "active").status == "active"

    def test_close_requires_reason(self, company, active):
        with pytest.raises(ValidationError):
            jobs.change_status(company, active.id, "closed")
        job = jobs.change_status(company, active.id, "closed", "cancelled")
        assert (job.status, job.closed_reason) == ("closed", "cancelled")

    def test_reopen_is_free_and_keeps_window(self, company, active):
        ledger.credit(company.id, 1, "seed")
        window = active.editable_until
        jobs.change_status(company, active.id, "closed", "success")

        job = jobs.change_status(company, active.id, "active")

        assert job.status == "active"
        assert job.closed_reason is None
        assert job.editable_until == window
        assert job.credit_cost == 5
        assert ledger.balance(company.id) == 1

    def test_draft_cannot_be_activated_directly(self, company, draft):
        with pytest.raises(InvalidTransition):
            jobs.change_status(company, draft.id, "active")

    def test_closed_draft_cannot_reopen(self, company, draft):
        jobs.change_status(company, draft.id, "closed", "cancelled")
        with pytest.raises(InvalidTransition):
            jobs.change_status(company, draft.id, "active")

    def test_paused_cannot_pause(self, company, active):
        jobs.change_status(company, active.id, "paused")
        with pytest.raises(InvalidTransition) as exc:
            jobs.change_status(company, active.id, "paused")
        assert set(exc.value.details["allowed"]) == {"active", "closed"}

    def test_unknown_status(self, company, active):
        with pytest.raises(ValidationError):
            jobs.change_status(company, active.id, "archived")


class TestReads:

    def test_confidential_job_sanitized_for_public(self, company, make_job):
        job = make_job(company, status="active", is_confidential=True,
                       location="Street 123, Monterrey, Nuevo León")
        public = jobs.get_job(job.id, None)
        assert public["company"] == "Empresa Confidencial"
        assert public["location"] == "Monterrey"
        assert public["logo_url"] is None

        own = jobs.get_job(job.id, company)
        assert own["company"] == "Acme S.A."
        assert own["logo_url"] == "https://cdn.example.com/acme.png"

    def test_drafts_hidden_from_public(self, draft, make_user):
        with pytest.raises(NotFound):
            jobs.get_job(draft.id, make_user("candidate"))

    def test_list_jobs(self, company, admin, make_job):
        active = make_job(company, status="active", is_confidential=True)
        make_job(company, status="draft")

        public = jobs.list_jobs({}, None)
        assert [j["id"] for j in public] == [active.id]
        assert public[0]["company"] == "Empresa Confidencial"

        assert len(jobs.list_jobs({"mine": True}, company)) == 2
        assert len(jobs.list_jobs({}, admin)) == 2
        assert len(jobs.list_jobs({"status": "draft"}, admin)) == 1

    def test_expired_job_leaves_public_view(self, company, make_job):
        job = make_job(company, status="active", expires_at=T0 + timedelta(days=30))
        before, after = T0 + timedelta(days=29), T0 + timedelta(days=30)

        assert [j["id"] for j in jobs.list_jobs({}, None, now=before)] == [job.id]
        assert jobs.get_job(job.id, None, now=before)["id"] == job.id

        assert jobs.list_jobs({}, None, now=after) == []
        with pytest.raises(NotFound):
            jobs.get_job(job.id, None, now=after)
        assert jobs.get_job(job.id, company, now=after)["id"] == job.id
        assert len(jobs.list_jobs({"mine": True}, company, now=after)) == 1

    def test_past_expiry_rejected_on_create(self, company):
        with pytest.raises(ValidationError):
            jobs.create_job(company, {"title": "QA", "expires_at": "2026-03-01T00:00:00"}, now=T0)

    def test_bad_expiry_format(self, company):
        with pytest.raises(ValidationError):
            jobs.create_job(company, {"title": "QA", "expires_at": "next week"}, now=T0)
