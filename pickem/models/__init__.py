from pickem import db  # noqa: F401 - imported for model imports

from .game import Game
from .odds import OddsHistory
from .pick import Pick
from .pool import Pool, PoolMember
from .team import Team
from .user import User

__all__ = [
    "User",
    "Team",
    "Game",
    "Pick",
    "Pool",
    "PoolMember",
    "OddsHistory",
]
