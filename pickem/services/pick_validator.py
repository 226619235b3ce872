"""
Pick submission and retraction rules

A pick may be created, changed or removed only while its game's scheduled
kickoff is strictly after "now". Kickoff itself counts as started. The
selected team must be one of the game's two participants, and each
(user, game) pair holds at most one pick, enforced by an atomic upsert on
the picks unique constraint.
"""

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from pickem import db
from pickem.errors import (
    GameAlreadyStarted,
    GameNotFound,
    InvalidTeamSelection,
    PickNotFound,
    StorageFailure,
)
from pickem.models import Game, Pick
from pickem.utils.logging_config import ContextualLogger
from pickem.utils.timezone_utils import as_utc, get_utc_time, to_storage

logger = logging.getLogger(__name__)

RETRACT_TOO_LATE = "Cannot remove picks for games that have already started"


class PickValidator:
    """Validates and applies pick mutations for a user"""

    def __init__(self, session=None):
        self.session = session or db.session

    def _resolve_now(self, now):
        return as_utc(now) if now is not None else get_utc_time()

    def _get_game(self, game_id):
        try:
            game = self.session.get(Game, game_id)
        except SQLAlchemyError as e:
            raise StorageFailure("Failed to load game", details=str(e)) from e

        if game is None:
            raise GameNotFound()
        return game

    def submit_pick(self, user_id, game_id, team_id, now=None):
        """
        Create or update the user's pick for a game

        Raises:
            GameNotFound: no game with game_id
            GameAlreadyStarted: kickoff is at or before now
            InvalidTeamSelection: team_id is not home or away team
            StorageFailure: the upsert failed

        Returns:
            Pick: the stored pick (game and team available for to_dict)
        """
        log = ContextualLogger(__name__, {"user_id": user_id, "game_id": game_id})
        now = self._resolve_now(now)

        game = self._get_game(game_id)

        if game.has_started(now):
            log.info("Pick rejected: game already started")
            raise GameAlreadyStarted()

        if not game.is_participant(team_id):
            log.info(f"Pick rejected: team {team_id} not in game")
            raise InvalidTeamSelection()

        try:
            self._upsert(user_id, game_id, team_id, now)
            self.session.commit()
            pick = self._load_pick(user_id, game_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error(f"Pick upsert failed: {e}")
            raise StorageFailure("Failed to save pick", details=str(e)) from e

        log.info(f"Pick saved for team {team_id}")
        self._after_change(game, pick, "saved")
        return pick

    def retract_pick(self, user_id, game_id, now=None):
        """
        Delete the user's pick for a game

        Raises:
            GameNotFound: no game with game_id
            GameAlreadyStarted: kickoff is at or before now
            PickNotFound: the user has no pick for the game
            StorageFailure: the delete failed
        """
        log = ContextualLogger(__name__, {"user_id": user_id, "game_id": game_id})
        now = self._resolve_now(now)

        game = self._get_game(game_id)

        if game.has_started(now):
            log.info("Retraction rejected: game already started")
            raise GameAlreadyStarted(RETRACT_TOO_LATE)

        try:
            deleted = self.session.execute(
                delete(Pick).where(Pick.user_id == user_id, Pick.game_id == game_id)
            ).rowcount
            if not deleted:
                self.session.rollback()
                raise PickNotFound()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error(f"Pick delete failed: {e}")
            raise StorageFailure("Failed to remove pick", details=str(e)) from e

        # Drop any stale identity-map copy of the deleted row
        self.session.expire_all()

        log.info("Pick removed")
        self._after_change(game, None, "removed", user_id=user_id)

    def list_picks(self, user_id, game_id=None, week=None, season=None):
        """
        Picks for a user, most recent first

        Filters by game when game_id is given, otherwise by week and/or
        season through the game relation; no filter returns everything.
        """
        query = (
            select(Pick)
            .where(Pick.user_id == user_id)
            .options(
                joinedload(Pick.game),
                joinedload(Pick.selected_team),
            )
            .order_by(Pick.created_at.desc(), Pick.id.desc())
        )

        if game_id is not None:
            query = query.where(Pick.game_id == game_id)
        elif week is not None or season is not None:
            query = query.join(Game, Pick.game_id == Game.id)
            if week is not None:
                query = query.where(Game.week == week)
            if season is not None:
                query = query.where(Game.season == season)

        try:
            return self.session.execute(query).unique().scalars().all()
        except SQLAlchemyError as e:
            raise StorageFailure("Failed to fetch picks", details=str(e)) from e

    def _upsert(self, user_id, game_id, team_id, now):
        """Single-statement insert-or-update keyed on (user_id, game_id)"""
        timestamp = to_storage(now)
        dialect = self.session.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            return self._upsert_with_savepoint(user_id, game_id, team_id, timestamp)

        stmt = insert(Pick).values(
            user_id=user_id,
            game_id=game_id,
            selected_team_id=team_id,
            created_at=timestamp,
            updated_at=timestamp,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "game_id"],
            set_={
                "selected_team_id": stmt.excluded.selected_team_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.session.execute(stmt)

    def _upsert_with_savepoint(self, user_id, game_id, team_id, timestamp):
        """Insert, falling back to update when the unique key already exists"""
        try:
            with self.session.begin_nested():
                self.session.add(
                    Pick(
                        user_id=user_id,
                        game_id=game_id,
                        selected_team_id=team_id,
                        created_at=timestamp,
                        updated_at=timestamp,
                    )
                )
        except IntegrityError:
            self.session.execute(
                update(Pick)
                .where(Pick.user_id == user_id, Pick.game_id == game_id)
                .values(selected_team_id=team_id, updated_at=timestamp)
            )

    def _load_pick(self, user_id, game_id):
        return self.session.execute(
            select(Pick)
            .where(Pick.user_id == user_id, Pick.game_id == game_id)
            .options(joinedload(Pick.game), joinedload(Pick.selected_team))
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _after_change(self, game, pick, action, user_id=None):
        """
        Invalidate cached views and notify subscribers

        The pick is already committed here, so failures are logged only.
        """
        from pickem.socketio_handlers import broadcast_pick_update
        from pickem.utils.cache_utils import invalidate_pick_views

        try:
            invalidate_pick_views(game)
        except Exception as e:
            logger.error(f"Failed to invalidate cache after pick {action}: {e}")

        try:
            broadcast_pick_update(pick, action, user_id=user_id, game_id=game.id)
        except Exception as e:
            logger.error(f"Failed to broadcast pick {action}: {e}")
