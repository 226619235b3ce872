import html

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    Optional,
    Regexp,
    ValidationError,
)

from pickem.models.user import User


def sanitize_input(text):
    """Sanitize user input to prevent XSS"""
    if not text:
        return text
    return html.escape(text.strip())


def _json_to_formdata(data):
    """Flatten a JSON object into form values; nulls count as missing"""
    values = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        values[key] = str(value)
    return MultiDict(values)


class JSONForm(FlaskForm):
    """Forms filled from JSON bodies; CSRF is checked globally by header"""

    # Alternate JSON key -> field name, used when the field name is absent
    aliases = {}

    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, *args, **kwargs):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        data = dict(data)
        for alias, name in cls.aliases.items():
            if data.get(name) is None and alias in data:
                data[name] = data[alias]
        return cls(*args, formdata=_json_to_formdata(data), **kwargs)

    def first_error(self):
        for errors in self.errors.values():
            if errors:
                return errors[0]
        return "Invalid request"


class LoginForm(JSONForm):
    username = StringField(
        "Username", validators=[DataRequired(), Length(min=3, max=120)]
    )
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")


class RegistrationForm(JSONForm):
    username = StringField(
        "Username",
        validators=[
            DataRequired(),
            Length(
                min=3, max=80, message="Username must be between 3 and 80 characters"
            ),
            Regexp(
                r"^[a-zA-Z0-9_.-]+$",
                message="Username can only contain letters, numbers, dots, underscores, and hyphens",
            ),
        ],
    )
    email = StringField("Email", validators=[DataRequired(), Email()])
    name = StringField("Name", validators=[Optional(), Length(max=100)])
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(),
            Length(min=8, message="Password must be at least 8 characters long"),
        ],
    )

    def validate_username(self, username):
        if User.query.filter_by(username=username.data).first():
            raise ValidationError(
                "Username already exists. Please choose a different username."
            )

    def validate_email(self, email):
        if User.query.filter_by(email=email.data.lower()).first():
            raise ValidationError(
                "Email already registered. Please use a different email."
            )


class ProfileForm(JSONForm):
    name = StringField(
        "Name", validators=[DataRequired(message="Name is required"), Length(max=100)]
    )
    username = StringField(
        "Username",
        validators=[
            Optional(),
            Length(min=3, max=80, message="Username must be at least 3 characters"),
        ],
    )
    image = StringField("Image", validators=[Optional(), Length(max=500)])

    def __init__(self, original_username, *args, **kwargs):
        super(ProfileForm, self).__init__(*args, **kwargs)
        self.original_username = original_username

    def validate_username(self, username):
        if username.data and username.data != self.original_username:
            if User.query.filter_by(username=username.data).first():
                raise ValidationError("Username is already taken")
