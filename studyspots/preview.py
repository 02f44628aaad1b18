"""Marker icon and popup content for a place and its ratings."""
from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Averages, Place, Rating
from .scoring import aggregate, percent_of_max, score_color, stars

BORDER_RATED = "#1565c0"
BORDER_UNRATED = "#2e7d32"

ACTION_CHECK_IN = "Check In"
ACTION_ADD_RATING = "Add Rating"


@dataclass(frozen=True)
class MarkerIcon:
    emoji: str
    border_color: str
    stars: Optional[str] = None
    star_color: Optional[str] = None


@dataclass(frozen=True)
class PopupContent:
    place_key: str
    name: str
    category_label: str
    address: Optional[str]
    opening_hours: Optional[str]
    review_count: int
    averages: Optional[Averages]
    latest_note: Optional[str]
    action_label: str
    can_view_all: bool


def category_emoji(category: str) -> str:
    if category == "cafe":
        return "☕"
    if category == "library":
        return "📚"
    return "💼"


def build_marker_icon(category: str, ratings: Sequence[Rating]) -> MarkerIcon:
    averages = aggregate(ratings)
    if averages is None:
        return MarkerIcon(emoji=category_emoji(category), border_color=BORDER_UNRATED)
    return MarkerIcon(
        emoji=category_emoji(category),
        border_color=BORDER_RATED,
        stars=stars(averages.avg_overall),
        star_color=score_color(averages.avg_overall),
    )


def build_popup(place: Place, ratings: Sequence[Rating]) -> PopupContent:
    averages = aggregate(ratings)
    # The store returns ratings oldest first, so the last one is the latest note.
    latest_note = ratings[-1].description if ratings else None
    return PopupContent(
        place_key=place.key,
        name=place.name,
        category_label=place.category_label,
        address=place.address,
        opening_hours=place.opening_hours,
        review_count=len(ratings),
        averages=averages,
        latest_note=latest_note or None,
        action_label=ACTION_CHECK_IN if averages is None else ACTION_ADD_RATING,
        can_view_all=averages is not None,
    )


def render_popup_html(popup: PopupContent) -> str:
    esc = html.escape
    parts = [
        '<div class="place-popup">',
        f"<strong>{esc(popup.name)}</strong><br/>",
        f'<span class="category">{esc(popup.category_label)}</span><br/>',
    ]
    if popup.address:
        parts.append(f'<span class="address">{esc(popup.address)}</span><br/>')
    if popup.opening_hours:
        parts.append(f'<span class="hours">🕐 {esc(popup.opening_hours)}</span><br/>')
    averages = popup.averages
    if averages is not None:
        plural = "s" if popup.review_count > 1 else ""
        parts.append('<div class="ratings">')
        parts.append(
            f'<span class="count">{popup.review_count} review{plural}</span> '
            f'<button data-intent="viewreviews" data-place-key="{esc(popup.place_key)}">View all</button>'
        )
        for label, value, score in (
            ("Quietness", averages.noise_label, averages.avg_noise),
            ("WiFi", averages.wifi_label, averages.avg_wifi),
        ):
            parts.append(
                f'<div class="meter" style="color: {score_color(score)};">'
                f"{label}: {esc(value)} ({percent_of_max(score)}%)</div>"
            )
        if popup.latest_note:
            parts.append(f'<div class="note">"{esc(popup.latest_note)}"</div>')
        parts.append("</div>")
    parts.append(
        f'<button data-intent="checkin" data-place-key="{esc(popup.place_key)}">'
        f"{esc(popup.action_label)}</button>"
    )
    parts.append("</div>")
    return "\n".join(parts)


def render_popup_text(popup: PopupContent) -> str:
    lines = [f"{popup.name} ({popup.category_label})"]
    if popup.address:
        lines.append(f"  {popup.address}")
    if popup.opening_hours:
        lines.append(f"  hours: {popup.opening_hours}")
    averages = popup.averages
    if averages is None:
        lines.append("  no ratings yet")
    else:
        plural = "s" if popup.review_count > 1 else ""
        lines.append(
            f"  {popup.review_count} review{plural}: quietness {averages.noise_label} "
            f"({averages.avg_noise}), wifi {averages.wifi_label} ({averages.avg_wifi}), "
            f"overall {stars(averages.avg_overall)}"
        )
        if popup.latest_note:
            lines.append(f'  "{popup.latest_note}"')
    lines.append(f"  [{popup.action_label}]")
    return "\n".join(lines)
