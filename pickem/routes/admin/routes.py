import logging

from flask import current_app, jsonify, request
from flask_login import current_user
from sqlalchemy import func

from pickem import db
from pickem.errors import ValidationFailed
from pickem.forms.admin import PoolForm
from pickem.forms.auth import sanitize_input
from pickem.models import Game, Pick, Pool
from pickem.routes.admin import bp
from pickem.routes.auth.routes import admin_required
from pickem.services.scheduler_service import scheduler_service
from pickem.socketio_handlers import get_connection_stats
from pickem.utils.cache_utils import (
    clear_all,
    get_cache_stats,
    invalidate_by_tags,
    invalidate_game,
    invalidate_key,
    invalidate_week,
)
from pickem.utils.data_sync import DataSync
from pickem.utils.odds_sync import NOT_CONFIGURED, OddsSync
from pickem.utils.nfl_calendar import (
    get_current_season,
    get_current_week,
    get_next_week_preview,
)

logger = logging.getLogger(__name__)


def _sync_failed(message):
    return (
        jsonify({"success": False, "error": message, "code": "sync_failed"}),
        500,
    )


@bp.route("/status")
@admin_required
def status():
    """Calendar, game and pick overview for the current week"""
    week = get_current_week()
    season = get_current_season()

    games_count = Game.query.filter_by(week=week, season=season).count()
    week_picks = Pick.query.join(Game, Pick.game_id == Game.id).filter(
        Game.week == week, Game.season == season
    )
    total_picks = week_picks.count()
    unique_users = (
        week_picks.with_entities(func.count(func.distinct(Pick.user_id))).scalar() or 0
    )

    return jsonify(
        {
            "success": True,
            "data": {
                "season": {
                    "current": {"week": week, "season": season},
                    "next": get_next_week_preview(week),
                    "configured_week": current_app.config.get("CURRENT_NFL_WEEK"),
                    "configured_season": current_app.config.get("CURRENT_NFL_SEASON"),
                },
                "games": {"current_week": games_count},
                "picks": {
                    "total": total_picks,
                    "unique_users": unique_users,
                    "average_per_user": (
                        round(total_picks / unique_users) if unique_users else 0
                    ),
                },
                "scheduler": scheduler_service.get_status(),
                "connections": get_connection_stats(),
            },
        }
    )


@bp.route("/sync", methods=["POST"])
@admin_required
def sync():
    """Pull teams, games or scores from ESPN"""
    data = request.get_json(silent=True) or {}
    action = data.get("action", "full")

    try:
        week = int(data.get("week") or get_current_week())
        season = int(data.get("season") or get_current_season())
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid week or season")

    data_sync = DataSync()

    if action == "full":
        success, message = data_sync.sync_current_week()
    elif action == "teams":
        success, message = data_sync.sync_teams()
    elif action == "games":
        success, message = data_sync.sync_week_games(week, season)
    elif action == "scores":
        success, message, _ = data_sync.update_game_scores(week, season)
    else:
        raise ValidationFailed("Unknown sync action")

    if not success:
        logger.warning(f"Admin sync '{action}' failed: {message}")
        return _sync_failed(message)

    logger.info(f"Admin {current_user.username} ran sync '{action}': {message}")
    return jsonify(
        {
            "success": True,
            "action": action,
            "week": week,
            "season": season,
            "message": message,
        }
    )


def _odds_sync():
    """The scheduler's odds client when running, so request counts carry over"""
    return scheduler_service.odds_sync or OddsSync()


@bp.route("/odds", methods=["GET"])
@admin_required
def odds_status():
    return jsonify(
        {
            "success": True,
            "data": {
                **_odds_sync().get_status(),
                "current_week": get_current_week(),
                "current_season": get_current_season(),
            },
        }
    )


@bp.route("/odds", methods=["POST"])
@admin_required
def odds_sync():
    """Refresh betting lines for a week (current by default)"""
    data = request.get_json(silent=True) or {}
    try:
        week = int(data.get("week") or get_current_week())
        season = int(data.get("season") or get_current_season())
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid week or season")

    client = _odds_sync()
    if not client.is_configured():
        return (
            jsonify(
                {"success": False, "error": NOT_CONFIGURED, "code": "odds_not_configured"}
            ),
            400,
        )

    success, message, updated = client.update_week_odds(week, season)
    if not success:
        logger.warning(f"Admin odds sync failed: {message}")
        return _sync_failed(message)

    logger.info(f"Admin {current_user.username} ran odds sync: {message}")
    return jsonify(
        {
            "success": True,
            "week": week,
            "season": season,
            "games_updated": updated,
            "message": message,
        }
    )


@bp.route("/scheduler", methods=["GET"])
@admin_required
def scheduler_status():
    return jsonify({"success": True, "scheduler": scheduler_service.get_status()})


@bp.route("/scheduler", methods=["POST"])
@admin_required
def scheduler_action():
    """Handle admin scheduler actions"""
    data = request.get_json(silent=True) or {}
    action = data.get("action")

    if action == "start":
        if scheduler_service.scheduler is None:
            scheduler_service.init_app(current_app._get_current_object())
        scheduler_service.start()
        return jsonify({"success": True, "message": "Scheduler started successfully"})

    elif action == "stop":
        scheduler_service.stop()
        return jsonify({"success": True, "message": "Scheduler stopped successfully"})

    elif action == "force_sync":
        success, message = scheduler_service.force_sync(data.get("sync_type", "live"))

    elif action in ("pause", "resume"):
        job_id = data.get("job_id")
        if not job_id:
            raise ValidationFailed("Job ID required")

        if action == "pause":
            success, message = scheduler_service.pause_job(job_id)
        else:
            success, message = scheduler_service.resume_job(job_id)

    else:
        raise ValidationFailed("Unknown action")

    if not success:
        return (
            jsonify({"success": False, "error": message, "code": "scheduler_error"}),
            500,
        )
    return jsonify({"success": True, "message": message})


@bp.route("/cache/stats")
@admin_required
def cache_stats():
    return jsonify({"success": True, "stats": get_cache_stats()})


@bp.route("/cache/invalidate", methods=["POST"])
@admin_required
def cache_invalidate():
    """Invalidate by key, tags, week+season, game, or everything"""
    data = request.get_json(silent=True) or {}
    key = data.get("key")
    tags = data.get("tags")
    week = data.get("week")
    season = data.get("season")
    game_id = data.get("game_id") or data.get("gameId")

    if key:
        invalidate_key(key)
        message = f"Cache key '{key}' invalidated"
    elif tags and isinstance(tags, list):
        removed = invalidate_by_tags(tags)
        message = f"Cache entries with tags [{', '.join(str(tag) for tag in tags)}] invalidated ({removed})"
    elif week and season:
        invalidate_week(week, season)
        message = f"Cache for week {week}, season {season} invalidated"
    elif game_id:
        invalidate_game(game_id)
        message = f"Cache for game {game_id} invalidated"
    elif data.get("all") is True:
        clear_all()
        message = "All cache data cleared"
    else:
        return (
            jsonify(
                {
                    "success": False,
                    "error": "No invalidation criteria provided",
                    "code": "validation_failed",
                    "supported_parameters": ["key", "tags", "week+season", "game_id", "all"],
                }
            ),
            400,
        )

    return jsonify({"success": True, "message": message})


@bp.route("/pools", methods=["GET"])
@admin_required
def list_pools():
    pools = Pool.query.order_by(Pool.created_at.desc()).all()
    return jsonify(
        {
            "success": True,
            "pools": [pool.to_dict() for pool in pools],
            "count": len(pools),
        }
    )


@bp.route("/pools", methods=["POST"])
@admin_required
def create_pool():
    form = PoolForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    pool = Pool(
        name=sanitize_input(form.name.data),
        description=sanitize_input(form.description.data) or None,
        is_public=form.is_public.data,
        owner_id=current_user.id,
    )
    db.session.add(pool)
    db.session.flush()
    pool.add_member(current_user.id)
    db.session.commit()

    logger.info(f"Admin {current_user.username} created pool {pool.id}")
    return jsonify({"success": True, "pool": pool.to_dict()}), 201
