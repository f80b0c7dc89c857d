# hiredesk/blueprints/jobs/forms.py
from flask_wtf import FlaskForm
from wtforms import BooleanField, DateTimeField, IntegerField, StringField, TextAreaField
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Length,
    NumberRange,
    Optional as Opt,
    ValidationError as FormError,
)

from ...extensions import _l
from ...models.pricing import SENIORITIES, WORK_MODES


class JobForm(FlaskForm):
    """Validates the JSON body of POST /jobs. Identity comes from a header, not a cookie."""

    class Meta:
        csrf = False

    title = StringField(_l("Title"), validators=[DataRequired(), Length(max=200)])
    company = StringField(_l("Company"), validators=[Opt(), Length(max=255)])
    description = TextAreaField(_l("Description"), validators=[Opt()])
    location = StringField(_l("Location"), validators=[Opt(), Length(max=255)])
    salary_min = IntegerField(_l("Minimum salary"), validators=[Opt(), NumberRange(min=0)])
    salary_max = IntegerField(_l("Maximum salary"), validators=[Opt(), NumberRange(min=0)])
    job_type = StringField(_l("Job type"), validators=[Opt(), Length(max=40)])
    profile = StringField(_l("Profile"), validators=[Opt(), Length(max=120)])
    seniority = StringField(_l("Seniority"), validators=[Opt(), AnyOf(SENIORITIES)])
    work_mode = StringField(_l("Work mode"), validators=[Opt(), AnyOf(WORK_MODES)])
    is_confidential = BooleanField(_l("Confidential"))
    expires_at = DateTimeField(
        _l("Expires at"),
        format=["%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"],
        validators=[Opt()],
    )
    publish = BooleanField(_l("Publish now"))

    def validate_salary_max(self, field):
        if field.data is not None and self.salary_min.data is not None and field.data < self.salary_min.data:
            raise FormError(_l("Maximum salary cannot be lower than the minimum."))
