"""Marker statistics grouped by marker name."""

from typing import Dict, List, Optional

from playwright.sync_api import Browser

from . import page_scripts
from .browser import evaluate, open_profile
from .config import Settings
from .models import MarkerSummary


def marker_name(marker: dict) -> str:
    """A payload ``name`` (already resolved from the string table) wins over the marker name."""
    data = marker.get("data") or {}
    if data.get("name") is not None:
        return data["name"]
    return marker.get("name") or ""


def marker_start(marker: dict) -> float:
    return marker.get("start") or marker.get("startTime") or 0


def fetch_markers(page) -> List[dict]:
    return evaluate(page, page_scripts.MARKERS).get("markers", [])


def summarize_markers(markers: List[dict]) -> List[MarkerSummary]:
    """Count/total/avg/min/max per name for interval markers, most frequent first."""
    durations: Dict[str, List[float]] = {}

    for marker in markers:
        start = marker.get("start")
        end = marker.get("end")
        if not start or not end:
            continue
        duration = end - start
        if duration <= 0:
            continue
        durations.setdefault(marker_name(marker), []).append(duration)

    summaries = []
    for name, values in durations.items():
        total = sum(values)
        summaries.append(
            MarkerSummary(
                name=name,
                count=len(values),
                total_duration=total,
                avg_duration=total / len(values),
                min_duration=min(values),
                max_duration=max(values),
            )
        )

    summaries.sort(key=lambda s: s.count, reverse=True)
    return summaries


def top_by_total_duration(summaries: List[MarkerSummary], limit: int = 5) -> List[MarkerSummary]:
    return sorted(summaries, key=lambda s: s.total_duration, reverse=True)[:limit]


def top_by_max_duration(summaries: List[MarkerSummary], limit: int = 5) -> List[MarkerSummary]:
    return sorted(summaries, key=lambda s: s.max_duration, reverse=True)[:limit]


def get_marker_summary(browser: Browser, url: str, settings: Optional[Settings] = None) -> List[MarkerSummary]:
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        markers = fetch_markers(page)
    return summarize_markers(markers)
