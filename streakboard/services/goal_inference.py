"""Infer a daily goal from a fitness challenge's title and description.

"Walk 10,000 steps every day" -> 10000.0, "Run 5 km" -> 5000.0 (meters),
"Burn 500 calories" -> 500.0. Only fitness challenges get an inferred goal.
"""
import re

from streakboard.models.challenge import ChallengeType, Metric

METERS_PER_MILE = 1609.34

STEP_PATTERNS = [
    re.compile(r'\b(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*(k)?\s*steps\b'),
    re.compile(r'\bstep\s*count\s*of\s*(\d{1,3}(?:,\d{3})+|\d+)\b'),
]

DISTANCE_PATTERN = re.compile(r'\b(\d+(?:\.\d+)?)\s*(km|kilometers|kilometres|miles|mile)\b')

CALORIE_PATTERN = re.compile(r'\b(\d+)\s*(?:k?cal|calories)\b')


def _to_number(raw: str) -> float:
    return float(raw.replace(',', ''))


def infer_goal(
    title: str, description: str, challenge_type: ChallengeType,
) -> tuple[Metric, float] | None:
    """Return (metric, goal) parsed from free text, or None."""
    if challenge_type != ChallengeType.FITNESS:
        return None

    text = f'{title} {description}'.lower()

    for pattern in STEP_PATTERNS:
        match = pattern.search(text)
        if match:
            steps = _to_number(match.group(1))
            if match.lastindex and match.lastindex >= 2 and match.group(2):
                steps *= 1000
            return Metric.STEPS, steps

    match = DISTANCE_PATTERN.search(text)
    if match:
        distance = _to_number(match.group(1))
        unit = match.group(2)
        if unit.startswith('mile'):
            return Metric.DISTANCE, distance * METERS_PER_MILE
        return Metric.DISTANCE, distance * 1000

    match = CALORIE_PATTERN.search(text)
    if match:
        return Metric.ACTIVE_ENERGY, _to_number(match.group(1))

    return None
