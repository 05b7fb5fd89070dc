from pickem import db  # noqa: F401 - imported for model imports

from .fixture import Fixture
from .gameweek import Gameweek
from .gameweek_score import GameweekScore
from .league import League
from .league_member import LeagueMember
from .pick import Pick
from .standing import Standing
from .team import Team
from .user import User

__all__ = [
    "User",
    "Team",
    "Gameweek",
    "Fixture",
    "Pick",
    "GameweekScore",
    "Standing",
    "League",
    "LeagueMember",
]
