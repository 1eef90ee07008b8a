"""Verification strategies: pure functions deciding whether evidence counts.

One tagged variant per verification mode, dispatched once in `evaluate`.
Nothing here touches the database or the metric provider; the orchestrator
fetches metric samples and passes them in.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Union

from streakboard.models.challenge import Challenge, Metric, PresenceKind, VerificationKind
from streakboard.services.geolocation import calculate_distance, is_valid_coordinate

# Observed check-in radius when a challenge doesn't set one
DEFAULT_RADIUS_METERS = 100.0

CHECKBOX_TRUTHY = {'true', 'yes', '1', 'on', 'checked'}


class VerificationStatus(str, Enum):
    """Outcome of one verification attempt."""
    VERIFIED = 'verified'
    ALREADY_VERIFIED_TODAY = 'already_verified_today'
    GOAL_NOT_MET = 'goal_not_met'
    INVALID_EVIDENCE = 'invalid_evidence'
    PROVIDER_UNAVAILABLE = 'provider_unavailable'


# Expected outcomes render without an error banner
EXPECTED_OUTCOMES = {
    VerificationStatus.VERIFIED,
    VerificationStatus.ALREADY_VERIFIED_TODAY,
    VerificationStatus.GOAL_NOT_MET,
}


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    reason: str = ''

    @property
    def success(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def is_error(self) -> bool:
        return self.status not in EXPECTED_OUTCOMES

    @property
    def retryable(self) -> bool:
        return self.status == VerificationStatus.PROVIDER_UNAVAILABLE


class InvalidChallengeConfiguration(ValueError):
    """A challenge row is missing parameters its verification mode needs."""
    pass


# ── Verification methods (tagged variant) ────────────────────────────────────

@dataclass(frozen=True)
class MetricThreshold:
    metric: Metric
    goal: float


@dataclass(frozen=True)
class ManualNumeric:
    goal: float


@dataclass(frozen=True)
class ManualText:
    pass


@dataclass(frozen=True)
class Checkbox:
    pass


@dataclass(frozen=True)
class TimerDuration:
    goal_minutes: float


@dataclass(frozen=True)
class LocationCheck:
    latitude: float
    longitude: float
    radius_meters: float = DEFAULT_RADIUS_METERS


@dataclass(frozen=True)
class Presence:
    kind: PresenceKind


VerificationMethod = Union[
    MetricThreshold, ManualNumeric, ManualText, Checkbox,
    TimerDuration, LocationCheck, Presence,
]

Evidence = Union[str, int, float, bool, tuple, list, None]


def method_for(challenge: Challenge) -> VerificationMethod:
    """Rebuild the tagged variant from a challenge's columns."""
    try:
        kind = VerificationKind(challenge.verification_kind)
    except ValueError:
        raise InvalidChallengeConfiguration(
            f'Unknown verification kind: {challenge.verification_kind}'
        )

    if kind == VerificationKind.METRIC_THRESHOLD:
        if challenge.metric is None or challenge.goal is None:
            raise InvalidChallengeConfiguration('Metric challenges need a metric and a goal')
        try:
            metric = Metric(challenge.metric)
        except ValueError:
            raise InvalidChallengeConfiguration(f'Unknown metric: {challenge.metric}')
        return MetricThreshold(metric=metric, goal=challenge.goal)

    if kind == VerificationKind.MANUAL_NUMERIC:
        if challenge.goal is None:
            raise InvalidChallengeConfiguration('Numeric challenges need a goal')
        return ManualNumeric(goal=challenge.goal)

    if kind == VerificationKind.TIMER_DURATION:
        if challenge.goal is None:
            raise InvalidChallengeConfiguration('Timer challenges need a goal in minutes')
        return TimerDuration(goal_minutes=challenge.goal)

    if kind == VerificationKind.LOCATION_CHECK:
        if challenge.target_latitude is None or challenge.target_longitude is None:
            raise InvalidChallengeConfiguration('Location challenges need a target coordinate')
        return LocationCheck(
            latitude=challenge.target_latitude,
            longitude=challenge.target_longitude,
            radius_meters=challenge.radius_meters or DEFAULT_RADIUS_METERS,
        )

    if kind == VerificationKind.PRESENCE:
        try:
            presence = PresenceKind(challenge.presence_kind or PresenceKind.PHOTO.value)
        except ValueError:
            raise InvalidChallengeConfiguration(f'Unknown presence kind: {challenge.presence_kind}')
        return Presence(kind=presence)

    if kind == VerificationKind.CHECKBOX:
        return Checkbox()
    return ManualText()


# ── Evidence parsing ─────────────────────────────────────────────────────────

def parse_number(evidence: Evidence) -> float | None:
    """Numeric evidence as float; None when it isn't a finite number."""
    if isinstance(evidence, bool) or evidence is None:
        return None
    if isinstance(evidence, (int, float)):
        value = float(evidence)
    elif isinstance(evidence, str):
        try:
            value = float(evidence.strip().replace(',', ''))
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def parse_coordinate(evidence: Evidence) -> tuple[float, float] | None:
    """(lat, lon) from a 2-sequence or a "lat,lon" string."""
    if isinstance(evidence, str):
        parts = [p.strip() for p in evidence.split(',')]
    elif isinstance(evidence, (tuple, list)):
        parts = list(evidence)
    else:
        return None
    if len(parts) != 2:
        return None
    lat, lon = parse_number(parts[0]), parse_number(parts[1])
    if lat is None or lon is None or not is_valid_coordinate(lat, lon):
        return None
    return lat, lon


def as_text(evidence: Evidence) -> str | None:
    """Free-text evidence. A bare number counts: JSON clients send "42" as 42."""
    if isinstance(evidence, str):
        return evidence
    if isinstance(evidence, (int, float)) and not isinstance(evidence, bool):
        return f'{evidence:g}' if math.isfinite(evidence) else None
    return None


def is_present(evidence: Evidence) -> bool:
    text = as_text(evidence)
    return text is not None and bool(text.strip())


def is_checked(evidence: Evidence) -> bool:
    if isinstance(evidence, bool):
        return evidence
    if isinstance(evidence, str):
        return evidence.strip().lower() in CHECKBOX_TRUTHY
    return False


# ── Strategies ───────────────────────────────────────────────────────────────

def _threshold(value: float, goal: float, unit: str = '') -> VerificationResult:
    if value >= goal:
        return VerificationResult(VerificationStatus.VERIFIED, f'{value:g}{unit} >= {goal:g}{unit}')
    return VerificationResult(VerificationStatus.GOAL_NOT_MET, f'{value:g}{unit} < {goal:g}{unit}')


def evaluate(
    method: VerificationMethod,
    evidence: Evidence = None,
    metric_sample: float | None = None,
) -> VerificationResult:
    """Decide whether today's evidence satisfies the challenge's method.

    `metric_sample` is the provider's cumulative value for the user's local
    day; None for a metric challenge means the provider could not answer.
    """
    if isinstance(method, MetricThreshold):
        if metric_sample is None:
            return VerificationResult(
                VerificationStatus.PROVIDER_UNAVAILABLE, 'Metric sample unavailable',
            )
        return _threshold(metric_sample, method.goal)

    if isinstance(method, (ManualNumeric, TimerDuration)):
        value = parse_number(evidence)
        if value is None:
            return VerificationResult(
                VerificationStatus.INVALID_EVIDENCE, 'Evidence must be a number',
            )
        if isinstance(method, TimerDuration):
            return _threshold(value, method.goal_minutes, ' min')
        return _threshold(value, method.goal)

    if isinstance(method, LocationCheck):
        coordinate = parse_coordinate(evidence)
        if coordinate is None:
            return VerificationResult(
                VerificationStatus.INVALID_EVIDENCE, 'Evidence must be a (lat, lon) pair',
            )
        distance = calculate_distance(
            coordinate[0], coordinate[1], method.latitude, method.longitude,
        )
        if distance <= method.radius_meters:
            return VerificationResult(
                VerificationStatus.VERIFIED, f'{distance:.0f} m from target',
            )
        return VerificationResult(
            VerificationStatus.GOAL_NOT_MET,
            f'{distance:.0f} m from target (limit {method.radius_meters:.0f} m)',
        )

    if isinstance(method, Checkbox):
        if is_checked(evidence):
            return VerificationResult(VerificationStatus.VERIFIED, 'Checked')
        return VerificationResult(VerificationStatus.GOAL_NOT_MET, 'Not checked')

    # ManualText and Presence only check that something was submitted
    if is_present(evidence):
        return VerificationResult(VerificationStatus.VERIFIED, 'Evidence submitted')
    return VerificationResult(VerificationStatus.INVALID_EVIDENCE, 'No evidence submitted')
