"""Challenge progress, verification and leaderboard engine."""

__version__ = '0.1.0'
