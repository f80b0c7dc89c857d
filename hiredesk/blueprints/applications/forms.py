# hiredesk/blueprints/applications/forms.py
from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional as Opt, Regexp

from ...extensions import _l

# shape only; addresses are never verified
EMAIL_RE = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ApplicationForm(FlaskForm):
    class Meta:
        csrf = False

    candidate_name = StringField(_l("Full name"), validators=[DataRequired(), Length(max=200)])
    candidate_email = StringField(
        _l("Email"),
        validators=[DataRequired(), Length(max=255), Regexp(EMAIL_RE, message=_l("Invalid e-mail address."))],
    )
    candidate_phone = StringField(_l("Phone"), validators=[Opt(), Length(max=50)])
    cv_url = StringField(_l("CV link"), validators=[Opt(), Length(max=500)])
    cover_letter = TextAreaField(_l("Cover letter"), validators=[Opt(), Length(max=5000)])
