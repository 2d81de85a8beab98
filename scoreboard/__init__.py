from .engine import ScoringEngine
from .errors import EmptyEvent, InvalidScore, NotFound, ScoringError, StorageFailure
from .models import CategoryTotal, FinalScore, Indeterminate, Leaderboard, LeaderboardEntry
from .repository import ScoreRepository

__all__ = [
    "ScoringEngine",
    "ScoreRepository",
    "CategoryTotal",
    "FinalScore",
    "Indeterminate",
    "Leaderboard",
    "LeaderboardEntry",
    "ScoringError",
    "NotFound",
    "EmptyEvent",
    "StorageFailure",
    "InvalidScore",
]
