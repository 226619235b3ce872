"""
Scoring for the Pick'em application

Settles picks once games are final and builds the weekly and season
leaderboards. One point per correct pick; ties and unfinished games leave
picks unsettled.
"""

import logging

from sqlalchemy.orm import joinedload

from pickem import db
from pickem.models import Game, Pick, User

logger = logging.getLogger(__name__)


def update_pick_results(game):
    """Settle every pick on a final game; returns the number of picks updated"""
    if not game or not game.is_final or not game.winner_team_id:
        return 0

    picks = game.picks.all()
    for pick in picks:
        pick.update_result()

    logger.info(f"Updated {len(picks)} picks for completed game {game.id}")
    return len(picks)


def recalculate_all_scores(season):
    """Re-settle picks for every final game of a season"""
    logger.info(f"Recalculating all scores for {season} season...")

    completed_games = Game.query.filter(
        Game.season == season,
        Game.is_final.is_(True),
        Game.winner_team_id.isnot(None),
    ).all()

    picks_updated = 0
    for game in completed_games:
        picks_updated += update_pick_results(game)

    db.session.commit()
    logger.info(f"Recalculation complete for {len(completed_games)} games")
    return {"games": len(completed_games), "picks": picks_updated}


def _pick_counts(picks):
    """Correct/incorrect/pending tallies for a list of picks"""
    correct = sum(
        1
        for pick in picks
        if pick.game.is_final and pick.game.winner_team_id == pick.selected_team_id
    )
    incorrect = sum(
        1
        for pick in picks
        if pick.game.is_final
        and pick.game.winner_team_id
        and pick.game.winner_team_id != pick.selected_team_id
    )
    pending = sum(1 for pick in picks if not pick.game.is_final)
    completed = correct + incorrect
    accuracy = (correct / completed) * 100 if completed else 0

    return {
        "total_picks": len(picks),
        "correct_picks": correct,
        "incorrect_picks": incorrect,
        "pending_picks": pending,
        "accuracy": round(accuracy, 2),
        "points": correct,
    }


def _picks_by_user(season, week=None):
    query = (
        db.session.query(Pick)
        .join(Game, Pick.game_id == Game.id)
        .filter(Game.season == season)
        .options(joinedload(Pick.game), joinedload(Pick.user))
    )
    if week is not None:
        query = query.filter(Game.week == week)

    grouped = {}
    for pick in query.all():
        grouped.setdefault(pick.user_id, []).append(pick)
    return grouped


def _user_entry(user, picks):
    entry = {
        "user_id": user.id,
        "username": user.username,
        "name": user.name,
    }
    entry.update(_pick_counts(picks))
    return entry


def calculate_weekly_scores(week, season):
    """Leaderboard for one week, sorted by accuracy then correct picks"""
    grouped = _picks_by_user(season, week=week)
    users = {user.id: user for user in User.query.filter(User.id.in_(grouped)).all()}

    stats = [_user_entry(users[user_id], picks) for user_id, picks in grouped.items()]
    stats.sort(key=lambda s: (s["accuracy"], s["correct_picks"]), reverse=True)
    return stats


def calculate_season_scores(season):
    """Season leaderboard with weekly breakdown, sorted by points then accuracy"""
    grouped = _picks_by_user(season)
    users = {user.id: user for user in User.query.filter(User.id.in_(grouped)).all()}

    stats = []
    for user_id, picks in grouped.items():
        entry = _user_entry(users[user_id], picks)

        by_week = {}
        for pick in picks:
            by_week.setdefault(pick.game.week, []).append(pick)

        breakdown = []
        for week in sorted(by_week):
            counts = _pick_counts(by_week[week])
            breakdown.append(
                {
                    "week": week,
                    "total_picks": counts["total_picks"],
                    "correct_picks": counts["correct_picks"],
                    "accuracy": counts["accuracy"],
                    "points": counts["points"],
                }
            )
        entry["weekly_breakdown"] = breakdown
        stats.append(entry)

    stats.sort(key=lambda s: (s["points"], s["accuracy"]), reverse=True)
    return stats
