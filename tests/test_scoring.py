import itertools

from studyspots.models import NoiseLevel, Rating, WifiSpeed
from studyspots.scoring import (
    aggregate,
    noise_label,
    noise_score,
    score_color,
    stars,
    wifi_label,
    wifi_score,
)


def _rating(noise, wifi, description=None):
    return Rating(author="u", noise_level=noise, wifi_speed=wifi, description=description)


def test_aggregate_empty_list_has_no_opinion():
    assert aggregate([]) is None


def test_overall_uses_two_stage_rounding():
    ratings = [
        _rating("Quiet", "Slow"),
        _rating("Quiet", "Slow"),
        _rating("Moderate", "Slow"),
    ]
    averages = aggregate(ratings)

    assert averages.avg_noise == 2.7
    assert averages.avg_wifi == 1.0
    assert averages.avg_overall == 1.9
    assert averages.noise_label == "Quiet"
    assert averages.wifi_label == "Slow"
    # A single mean over all six raw scores would give 1.8.
    assert averages.avg_overall != 1.8


def test_rounding_is_half_up():
    ratings = [
        _rating("Quiet", "Okay"),
        _rating("Moderate", "Okay"),
        _rating("Moderate", "Okay"),
        _rating("Moderate", "Okay"),
    ]
    averages = aggregate(ratings)
    assert averages.avg_noise == 2.3
    assert averages.avg_overall == 2.2


def test_unknown_values_score_as_middle():
    averages = aggregate([_rating("Silent", None)])
    assert averages.avg_noise == 2.0
    assert averages.avg_wifi == 2.0
    assert averages.noise_label == "Moderate"
    assert averages.wifi_label == "Okay"


def test_one_corrupt_record_does_not_poison_the_aggregate():
    averages = aggregate([_rating("Quiet", "Fast"), _rating("???", "Fast")])
    assert averages.avg_noise == 2.5
    assert averages.noise_label == "Quiet"
    assert averages.wifi_label == "Fast"


def test_enum_members_and_strings_score_the_same():
    assert noise_score(NoiseLevel.QUIET) == noise_score("Quiet") == 3
    assert wifi_score(WifiSpeed.SLOW) == wifi_score("Slow") == 1


def test_label_thresholds():
    assert noise_label(2.5) == "Quiet"
    assert noise_label(2.4) == "Moderate"
    assert noise_label(1.5) == "Moderate"
    assert noise_label(1.4) == "Buzzing"
    assert wifi_label(2.5) == "Fast"
    assert wifi_label(1.5) == "Okay"
    assert wifi_label(1.0) == "Slow"


def test_labels_consistent_with_scores_for_small_lists():
    noise_values = ["Quiet", "Moderate", "Buzzing"]
    wifi_values = ["Slow", "Okay", "Fast"]
    for size in (1, 2, 3):
        for combo in itertools.product(zip(noise_values, wifi_values), repeat=size):
            averages = aggregate([_rating(n, w) for n, w in combo])
            assert averages is not None
            assert averages.noise_label == noise_label(averages.avg_noise)
            assert averages.wifi_label == wifi_label(averages.avg_wifi)
            assert 1.0 <= averages.avg_overall <= 3.0


def test_stars_and_colors():
    assert stars(3.0) == "★★★"
    assert stars(1.9) == "★★☆"
    assert stars(0.2) == "☆☆☆"
    assert stars(3.7) == "★★★"
    assert score_color(2.6) == "#2e7d32"
    assert score_color(2.0) == "#f9a825"
    assert score_color(1.0) == "#e65100"
