"""Noise/WiFi rating aggregation on a 1-3 scale where higher is always better."""
from __future__ import annotations

import math
from typing import Any, Dict, Optional, Sequence

from .models import Averages, NoiseLevel, Rating, WifiSpeed, enum_value

NOISE_SCORES: Dict[str, int] = {
    NoiseLevel.QUIET.value: 3,
    NoiseLevel.MODERATE.value: 2,
    NoiseLevel.BUZZING.value: 1,
}
WIFI_SCORES: Dict[str, int] = {
    WifiSpeed.SLOW.value: 1,
    WifiSpeed.OKAY.value: 2,
    WifiSpeed.FAST.value: 3,
}
DEFAULT_SCORE = 2

GOOD_THRESHOLD = 2.5
OKAY_THRESHOLD = 1.5

COLOR_GOOD = "#2e7d32"
COLOR_OKAY = "#f9a825"
COLOR_POOR = "#e65100"


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def noise_score(level: Any) -> int:
    return NOISE_SCORES.get(enum_value(level), DEFAULT_SCORE)


def wifi_score(speed: Any) -> int:
    return WIFI_SCORES.get(enum_value(speed), DEFAULT_SCORE)


def noise_label(score: float) -> str:
    if score >= GOOD_THRESHOLD:
        return NoiseLevel.QUIET.value
    if score >= OKAY_THRESHOLD:
        return NoiseLevel.MODERATE.value
    return NoiseLevel.BUZZING.value


def wifi_label(score: float) -> str:
    if score >= GOOD_THRESHOLD:
        return WifiSpeed.FAST.value
    if score >= OKAY_THRESHOLD:
        return WifiSpeed.OKAY.value
    return WifiSpeed.SLOW.value


def score_color(score: float) -> str:
    if score >= GOOD_THRESHOLD:
        return COLOR_GOOD
    if score >= OKAY_THRESHOLD:
        return COLOR_OKAY
    return COLOR_POOR


def aggregate(ratings: Sequence[Rating]) -> Optional[Averages]:
    """Summarize a rating list, or return None when there is nothing to summarize.

    The overall score averages the already-rounded per-dimension scores and
    rounds again; displayed values depend on that order.
    """
    if not ratings:
        return None
    count = len(ratings)
    avg_noise = round_half_up(sum(noise_score(r.noise_level) for r in ratings) / count)
    avg_wifi = round_half_up(sum(wifi_score(r.wifi_speed) for r in ratings) / count)
    avg_overall = round_half_up((avg_noise + avg_wifi) / 2)
    return Averages(
        avg_noise=avg_noise,
        avg_wifi=avg_wifi,
        avg_overall=avg_overall,
        noise_label=noise_label(avg_noise),
        wifi_label=wifi_label(avg_wifi),
    )


def star_count(score: float) -> int:
    return max(0, min(3, int(math.floor(score + 0.5))))


def stars(score: float) -> str:
    filled = star_count(score)
    return "★" * filled + "☆" * (3 - filled)


def percent_of_max(score: float) -> int:
    return int(math.floor(score / 3 * 100 + 0.5))
