"""Shared pytest fixtures for the Pick'em test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from pickem import create_app
from pickem import db as _db
from pickem.models import Game, Team, User
from pickem.utils.timezone_utils import to_storage

PASSWORD = "password123"

KICKOFF = datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def teams(app):
    """Three teams: two to play each other and one spectator"""
    created = {}
    for abbreviation, name in (
        ("KC", "Kansas City Chiefs"),
        ("BUF", "Buffalo Bills"),
        ("DAL", "Dallas Cowboys"),
    ):
        team = Team(name=name, display_name=name, abbreviation=abbreviation)
        _db.session.add(team)
        created[abbreviation] = team
    _db.session.commit()
    return created


@pytest.fixture
def make_user(app):
    def _make_user(username="alice", is_admin=False, password=PASSWORD, **kwargs):
        user = User(
            username=username,
            email=kwargs.pop("email", f"{username}@example.com"),
            name=kwargs.pop("name", username.title()),
            is_admin=is_admin,
            **kwargs,
        )
        user.set_password(password)
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user("alice")


@pytest.fixture
def admin(make_user):
    return make_user("admin", is_admin=True)


@pytest.fixture
def make_game(app, teams):
    def _make_game(
        kickoff=KICKOFF, home="KC", away="BUF", week=1, season=2025, **kwargs
    ):
        game = Game(
            week=week,
            season=season,
            home_team_id=teams[home].id,
            away_team_id=teams[away].id,
            game_time=to_storage(kickoff),
            **kwargs,
        )
        _db.session.add(game)
        _db.session.commit()
        return game

    return _make_game


@pytest.fixture
def upcoming_game(make_game):
    """A game kicking off a day from now"""
    return make_game(kickoff=datetime.now(timezone.utc) + timedelta(days=1))


@pytest.fixture
def started_game(make_game):
    """A game that kicked off an hour ago"""
    return make_game(
        kickoff=datetime.now(timezone.utc) - timedelta(hours=1),
        home="DAL",
        away="KC",
    )


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        response = client.post(
            "/api/auth/login", json={"username": user.username, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return response

    return _login
