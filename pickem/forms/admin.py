from wtforms import BooleanField, DateTimeField, FloatField, IntegerField, StringField
from wtforms.validators import (
    DataRequired,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)

from pickem.forms.auth import JSONForm


class TeamForm(JSONForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=100)])
    display_name = StringField(
        "Display Name", validators=[DataRequired(), Length(max=100)]
    )
    abbreviation = StringField(
        "Abbreviation", validators=[DataRequired(), Length(min=2, max=10)]
    )
    logo_url = StringField("Logo", validators=[Optional(), Length(max=500)])
    color = StringField(
        "Color",
        validators=[
            Optional(),
            Regexp(r"^#[0-9a-fA-F]{6}$", message="Color must be a hex value like #1A2B3C"),
        ],
    )


class GameForm(JSONForm):
    home_team_id = IntegerField("Home Team", validators=[InputRequired()])
    away_team_id = IntegerField("Away Team", validators=[InputRequired()])
    game_time = DateTimeField(
        "Kickoff",
        format=[
            "%Y-%m-%dT%H:%M:%S%z",
            "%Y-%m-%dT%H:%M:%S.%f%z",
            "%Y-%m-%dT%H:%M:%S",
            "%Y-%m-%dT%H:%M",
        ],
        validators=[InputRequired()],
    )
    week = IntegerField(
        "Week", validators=[InputRequired(), NumberRange(min=1, max=22)]
    )
    season = IntegerField(
        "Season", validators=[InputRequired(), NumberRange(min=1920, max=2100)]
    )
    spread = FloatField("Spread", validators=[Optional()])
    over_under = FloatField("Over/Under", validators=[Optional()])

    def validate_away_team_id(self, field):
        if field.data == self.home_team_id.data:
            raise ValidationError("Home and away teams must be different")


class PoolForm(JSONForm):
    name = StringField(
        "Pool Name",
        validators=[
            DataRequired(),
            Length(min=3, max=100, message="Pool name must be between 3 and 100 characters"),
        ],
    )
    description = StringField("Description", validators=[Optional(), Length(max=500)])
    is_public = BooleanField("Public", default=False)


class JoinPoolForm(JSONForm):
    invite_code = StringField(
        "Invite Code",
        validators=[DataRequired(message="Invite code is required"), Length(max=8)],
    )
