from wtforms import IntegerField
from wtforms.validators import InputRequired

from pickem.forms.auth import JSONForm

MISSING_FIELDS = "Missing required fields: game_id, team_id"


class PickForm(JSONForm):
    aliases = {"gameId": "game_id", "teamId": "team_id"}

    game_id = IntegerField("Game", validators=[InputRequired(message=MISSING_FIELDS)])
    team_id = IntegerField("Team", validators=[InputRequired(message=MISSING_FIELDS)])
