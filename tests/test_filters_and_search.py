import pytest

from studyspots.filters import FilterState, matches_filters
from studyspots.models import Place, Rating
from studyspots.reconciler import build_markers
from studyspots.search import search


def _rating(noise, wifi):
    return Rating(author="u", noise_level=noise, wifi_speed=wifi)


def _place(place_id, name, category="cafe"):
    return Place(id=place_id, lat=47.0 + place_id / 1000, lon=8.0, name=name, category=category)


PLACES = [
    _place(1, "Quiet Corner Cafe"),
    _place(2, "Busy Bean Cafe"),
    _place(3, "Central Library", "library"),
    _place(4, "Unrated Cafe"),
    _place(5, "Hive", "coworking_space"),
]
RATED = {
    "node/1": [_rating("Quiet", "Fast")],
    "node/2": [_rating("Buzzing", "Okay")],
    "node/3": [_rating("Quiet", "Slow"), _rating("Moderate", "Slow")],
    "node/5": [_rating("Moderate", "Fast")],
}


def test_invalid_filter_values_are_rejected():
    with pytest.raises(ValueError):
        FilterState(noise_filter="silent")
    with pytest.raises(ValueError):
        FilterState(wifi_filter="Fast")
    with pytest.raises(ValueError):
        FilterState(radius=0)


def test_all_filters_never_require_ratings():
    assert matches_filters(None, FilterState()) is True
    assert matches_filters([], FilterState()) is True


def test_active_filter_excludes_unrated_places():
    quiet = FilterState(noise_filter="quiet")
    assert matches_filters([], quiet) is False
    assert matches_filters(RATED["node/1"], quiet) is True
    assert matches_filters(RATED["node/2"], quiet) is False


def test_filters_combine():
    filters = FilterState(noise_filter="quiet", wifi_filter="slow")
    assert matches_filters(RATED["node/3"], filters) is True
    assert matches_filters(RATED["node/1"], filters) is False


def test_search_is_case_insensitive_on_name_and_category():
    assert [r.id for r in search("quiet", PLACES, RATED, FilterState())] == [1]
    assert [r.id for r in search("LIBRARY", PLACES, RATED, FilterState())] == [3]
    assert [r.id for r in search("coworking space", PLACES, RATED, FilterState())] == [5]


def test_blank_query_returns_nothing():
    assert search("   ", PLACES, RATED, FilterState()) == []


def test_search_is_limited_to_five_in_feed_order():
    places = [_place(i, f"Cafe {i}") for i in range(1, 9)]
    results = search("cafe", places, {}, FilterState())
    assert [r.id for r in results] == [1, 2, 3, 4, 5]


def test_search_with_quiet_filter_skips_unrated():
    results = search("cafe", PLACES, RATED, FilterState(noise_filter="quiet"))
    assert [r.id for r in results] == [1]


def test_search_and_map_agree_on_filters():
    for noise in ("all", "quiet", "moderate", "buzzing"):
        for wifi in ("all", "fast", "okay", "slow"):
            filters = FilterState(noise_filter=noise, wifi_filter=wifi)
            on_map = {m.place_id for m in build_markers(PLACES, RATED, filters)}
            found = {r.id for r in search("e", PLACES, RATED, filters, limit=100)}
            assert found == on_map, (noise, wifi)


def test_unnamed_places_match_on_category_only():
    places = [_place(9, "Unknown", "library")]
    assert search("unk", places, {}, FilterState()) == []
    assert [r.id for r in search("libr", places, {}, FilterState())] == [9]
