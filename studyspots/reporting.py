"""Output helpers for the marker set."""
from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO

from .http import RequestMetrics
from .preview import render_popup_html, render_popup_text
from .reconciler import MarkerSpec


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except Exception:
        return
    try:
        os.fsync(dir_fd)
    except Exception:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except Exception:
            pass
        raise


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def marker_feature(marker: MarkerSpec) -> Dict[str, Any]:
    popup = marker.popup
    averages = popup.averages
    return {
        "type": "Feature",
        "id": marker.place_id,
        "geometry": {"type": "Point", "coordinates": [marker.lon, marker.lat]},
        "properties": {
            "place_key": marker.place_key,
            "name": popup.name,
            "category": popup.category_label,
            "address": popup.address,
            "opening_hours": popup.opening_hours,
            "review_count": popup.review_count,
            "avg_noise": averages.avg_noise if averages else None,
            "avg_wifi": averages.avg_wifi if averages else None,
            "avg_overall": averages.avg_overall if averages else None,
            "noise_label": averages.noise_label if averages else None,
            "wifi_label": averages.wifi_label if averages else None,
            "latest_note": popup.latest_note,
            "icon": marker.icon.emoji,
            "border_color": marker.icon.border_color,
            "stars": marker.icon.stars,
            "star_color": marker.icon.star_color,
            "popup_html": render_popup_html(popup),
        },
    }


def write_markers_geojson(path: str, markers: Iterable[MarkerSpec]) -> None:
    write_json_object(
        path,
        {
            "type": "FeatureCollection",
            "features": [marker_feature(m) for m in markers],
        },
    )


def write_markers_csv(path: str, markers: Iterable[MarkerSpec]) -> None:
    fieldnames = [
        "place_id",
        "place_key",
        "name",
        "category",
        "lat",
        "lon",
        "address",
        "review_count",
        "avg_noise",
        "avg_wifi",
        "avg_overall",
        "noise_label",
        "wifi_label",
        "latest_note",
    ]
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for marker in markers:
            props = marker_feature(marker)["properties"]
            row = {name: props.get(name) for name in fieldnames}
            row.update(
                {
                    "place_id": marker.place_id,
                    "lat": marker.lat,
                    "lon": marker.lon,
                }
            )
            writer.writerow(row)


def render_summary(
    markers: Iterable[MarkerSpec],
    metrics: Optional[RequestMetrics] = None,
    place_count: Optional[int] = None,
) -> str:
    markers = list(markers)
    lines: List[str] = []
    if place_count is not None:
        lines.append(f"Places loaded: {place_count}")
    lines.append(f"Markers shown: {len(markers)}")
    if metrics is not None:
        lines.append(
            f"Feed requests: {metrics.network_feed} "
            f"(cache hits: {metrics.cache_hits_feed}, stale discards: {metrics.stale_discards})"
        )
    for marker in markers:
        lines.append("")
        lines.append(render_popup_text(marker.popup))
    return "\n".join(lines)
