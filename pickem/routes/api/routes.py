import logging

from flask import current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pickem import db
from pickem.errors import (
    Conflict,
    GameNotFound,
    NotFound,
    StorageFailure,
    ValidationFailed,
)
from pickem.forms.admin import GameForm, JoinPoolForm, TeamForm
from pickem.forms.auth import ProfileForm, sanitize_input
from pickem.forms.picks import PickForm
from pickem.models import Game, Pool, Team
from pickem.routes.api import bp
from pickem.routes.auth.routes import admin_required
from pickem.services.pick_validator import PickValidator
from pickem.utils.cache_utils import (
    GAMES_TAG,
    LEADERBOARD_TAG,
    TEAMS_TAG,
    cached_payload,
    invalidate_by_tags,
    invalidate_week,
    week_tag,
)
from pickem.utils.nfl_calendar import get_current_season, get_current_week
from pickem.utils.scoring import (
    calculate_season_scores,
    calculate_weekly_scores,
    recalculate_all_scores,
)
from pickem.utils.timezone_utils import to_storage

logger = logging.getLogger(__name__)


def _int_arg(*names):
    """First integer query argument found under any of names"""
    for name in names:
        value = request.args.get(name)
        if value is None or value == "":
            continue
        try:
            return int(value)
        except ValueError:
            raise ValidationFailed(f"Invalid {name} parameter")
    return None


def _week_and_season():
    week = _int_arg("week")
    season = _int_arg("season")
    return (
        week if week is not None else get_current_week(),
        season if season is not None else get_current_season(),
    )


# Picks


@bp.route("/picks", methods=["GET"])
@login_required
def list_picks():
    """Current user's picks, filtered by game or by week/season"""
    game_id = _int_arg("game_id", "gameId")
    picks = PickValidator().list_picks(
        current_user.id,
        game_id=game_id,
        week=_int_arg("week"),
        season=_int_arg("season"),
    )
    return jsonify(
        {
            "success": True,
            "picks": [pick.to_dict() for pick in picks],
            "count": len(picks),
        }
    )


@bp.route("/picks", methods=["POST"])
@login_required
def submit_pick():
    form = PickForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    pick = PickValidator().submit_pick(
        current_user.id, form.game_id.data, form.team_id.data
    )
    return jsonify(
        {"success": True, "pick": pick.to_dict(), "message": "Pick saved successfully"}
    )


@bp.route("/picks", methods=["DELETE"])
@login_required
def retract_pick():
    game_id = _int_arg("game_id", "gameId")
    if game_id is None:
        raise ValidationFailed("Missing game_id parameter")

    PickValidator().retract_pick(current_user.id, game_id)
    return jsonify({"success": True, "message": "Pick removed successfully"})


# Games


def _games_tags(week, season):
    return [GAMES_TAG, week_tag(week, season)]


@cached_payload("games", timeout=60, tags=_games_tags)
def _games_payload(week, season):
    games = Game.get_games_for_week(week, season)
    return {
        "success": True,
        "games": [game.to_dict(include_picks=True) for game in games],
        "week": week,
        "season": season,
        "count": len(games),
    }


@bp.route("/games", methods=["GET"])
def list_games():
    week, season = _week_and_season()
    try:
        return jsonify(_games_payload(week, season))
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to fetch games", details=str(e))


@bp.route("/games/<int:game_id>", methods=["GET"])
def get_game(game_id):
    game = db.session.get(Game, game_id)
    if not game:
        raise GameNotFound()
    return jsonify({"success": True, "game": game.to_dict(include_picks=True)})


@bp.route("/games/<int:game_id>/odds", methods=["GET"])
def game_odds(game_id):
    """Recorded betting lines for a game, newest first"""
    game = db.session.get(Game, game_id)
    if not game:
        raise GameNotFound()

    history = game.odds_history.all()
    return jsonify(
        {
            "success": True,
            "game_id": game.id,
            "history": [entry.to_dict() for entry in history],
            "count": len(history),
        }
    )


@bp.route("/games", methods=["POST"])
@admin_required
def create_game():
    form = GameForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    home_team = db.session.get(Team, form.home_team_id.data)
    away_team = db.session.get(Team, form.away_team_id.data)
    if not home_team or not away_team:
        raise ValidationFailed("One or both teams not found")

    game = Game(
        week=form.week.data,
        season=form.season.data,
        home_team_id=home_team.id,
        away_team_id=away_team.id,
        game_time=to_storage(form.game_time.data),
        spread=form.spread.data,
        over_under=form.over_under.data,
    )

    try:
        db.session.add(game)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Game already exists for these teams this week")

    invalidate_week(game.week, game.season)
    logger.info(f"Admin {current_user.username} created game {game.id}")
    return jsonify({"success": True, "game": game.to_dict()}), 201


# Teams


@cached_payload("teams", timeout=3600, tags=[TEAMS_TAG])
def _teams_payload():
    teams = Team.get_all()
    return {
        "success": True,
        "teams": [team.to_dict() for team in teams],
        "count": len(teams),
    }


@bp.route("/teams", methods=["GET"])
def list_teams():
    return jsonify(_teams_payload())


@bp.route("/teams", methods=["POST"])
@admin_required
def create_team():
    form = TeamForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    abbreviation = form.abbreviation.data.strip().upper()
    if Team.get_by_abbreviation(abbreviation):
        raise Conflict("Team with this abbreviation already exists")

    team = Team(
        name=sanitize_input(form.name.data),
        display_name=sanitize_input(form.display_name.data),
        abbreviation=abbreviation,
        logo_url=form.logo_url.data or None,
        color=form.color.data or None,
    )

    try:
        db.session.add(team)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Team with this abbreviation already exists")

    invalidate_by_tags([TEAMS_TAG])
    return jsonify({"success": True, "team": team.to_dict()}), 201


# Leaderboard


@cached_payload("leaderboard", timeout=300, tags=[LEADERBOARD_TAG])
def _leaderboard_payload(board_type, week, season):
    if board_type == "season":
        leaderboard = calculate_season_scores(season)
    else:
        leaderboard = calculate_weekly_scores(week, season)

    payload = {
        "success": True,
        "leaderboard": leaderboard,
        "type": board_type,
        "season": season,
        "count": len(leaderboard),
    }
    if board_type == "week":
        payload["week"] = week
    return payload


@bp.route("/leaderboard", methods=["GET"])
def leaderboard():
    board_type = request.args.get("type", "week")
    if board_type not in ("week", "season"):
        raise ValidationFailed("Invalid leaderboard type")

    week, season = _week_and_season()
    return jsonify(_leaderboard_payload(board_type, week, season))


@bp.route("/leaderboard", methods=["POST"])
@admin_required
def leaderboard_action():
    data = request.get_json(silent=True) or {}
    if data.get("action") != "recalculate":
        raise ValidationFailed("Invalid action")

    season = data.get("season") or get_current_season()
    try:
        result = recalculate_all_scores(int(season))
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid season")

    invalidate_by_tags([LEADERBOARD_TAG])
    return jsonify(
        {
            "success": True,
            "message": f"Recalculated {result['picks']} picks across {result['games']} games",
            "season": int(season),
            **result,
        }
    )


# Profile


def _profile_payload(user):
    data = user.to_dict()
    limit = current_app.config.get("RECENT_PICKS_LIMIT", 10)
    data["picks"] = [pick.to_dict() for pick in user.get_recent_picks(limit)]
    data["pools"] = [pool.to_dict() for pool in user.get_pools()]
    return data


@bp.route("/user/profile", methods=["GET"])
@login_required
def get_profile():
    return jsonify({"success": True, "user": _profile_payload(current_user)})


@bp.route("/user/profile", methods=["PATCH"])
@login_required
def update_profile():
    form = ProfileForm.from_json(current_user.username)
    if not form.validate():
        raise ValidationFailed(form.first_error())

    current_user.name = sanitize_input(form.name.data)
    if form.username.data:
        current_user.username = form.username.data.strip()
    current_user.image = form.image.data or None

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailed("Username is already taken")

    return jsonify(
        {
            "success": True,
            "user": current_user.to_dict(),
            "message": "Profile updated successfully",
        }
    )


# Pools


@bp.route("/pools", methods=["GET"])
@login_required
def my_pools():
    pools = current_user.get_pools()
    return jsonify(
        {
            "success": True,
            "pools": [pool.to_dict() for pool in pools],
            "count": len(pools),
        }
    )


@bp.route("/pools/join", methods=["POST"])
@login_required
def join_pool():
    form = JoinPoolForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    pool = Pool.query.filter_by(invite_code=form.invite_code.data.strip().upper()).first()
    if not pool:
        raise NotFound("Invalid invite code")

    if pool.is_user_member(current_user.id):
        return jsonify(
            {"success": True, "pool": pool.to_dict(), "message": "Already a member"}
        )

    pool.add_member(current_user.id)
    db.session.commit()

    logger.info(f"User {current_user.username} joined pool {pool.id}")
    return jsonify(
        {"success": True, "pool": pool.to_dict(), "message": f"Joined {pool.name}"}
    )
