from streakboard.models.user import User
from streakboard.models.challenge import Challenge, ChallengeParticipant
from streakboard.models.ledger import ProgressEntry
from streakboard.models.leaderboard import LeaderboardEntry
from streakboard.models.completion import ChallengeCompletion
from streakboard.models.activity import ActivityItem

__all__ = [
    'User',
    'Challenge',
    'ChallengeParticipant',
    'ProgressEntry',
    'LeaderboardEntry',
    'ChallengeCompletion',
    'ActivityItem',
]
