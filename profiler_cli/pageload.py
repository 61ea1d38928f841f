"""Page load summary: navigation timing, resources, CPU categories and jank.

Everything is keyed off the first ``Navigation::Start`` marker; timings are
reported relative to it where the profiler UI does the same.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from playwright.sync_api import Browser

from . import page_scripts
from .browser import evaluate, open_profile
from .config import Settings
from .log import log
from .markers import fetch_markers, marker_name, marker_start
from .models import JankPeriod, PageLoadSummary, Resource, ResourceStats, SampleCategoryStats

IMAGE_RE = re.compile(r"\.(png|jpg|jpeg|gif|webp|svg|ico)", re.IGNORECASE)
FONT_RE = re.compile(r"\.(woff|woff2|ttf|eot)", re.IGNORECASE)
PAINT_AFTER_RE = re.compile(r"after (\d+)ms")
PAINT_URL_RE = re.compile(r"for URL (https?://[^,]+)")

TOP_RESOURCES = 10
JANK_TOP_FUNCTIONS = 5


@dataclass
class _Timeline:
    navigation_start: Optional[float] = None
    load: Optional[float] = None
    url: Optional[str] = None
    first_contentful_paint: Optional[float] = None
    largest_contentful_paint: Optional[float] = None
    # (resource, absolute start)
    resources: List[Tuple[Resource, float]] = field(default_factory=list)
    # (absolute start, absolute end)
    janks: List[Tuple[float, float]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.navigation_start is not None and self.load is not None


def classify_resource(uri: str) -> str:
    if uri.endswith(".js") or ".js?" in uri:
        return "JS"
    if uri.endswith(".css") or ".css?" in uri:
        return "CSS"
    if IMAGE_RE.search(uri):
        return "Image"
    if FONT_RE.search(uri):
        return "Font"
    if uri.startswith("http") and "." not in uri:
        return "Document"
    return "Other"


def scan_markers(markers: List[dict]) -> _Timeline:
    timeline = _Timeline()

    for marker in markers:
        name = marker_name(marker)
        data = marker.get("data") or {}

        if name == "Navigation::Start" and timeline.navigation_start is None:
            timeline.navigation_start = marker_start(marker)
        elif name.startswith("Load ") and data.get("URI"):
            uri = data["URI"]
            start = marker_start(marker)
            duration = marker["end"] - start if marker.get("end") else 0
            if timeline.navigation_start is not None:
                if uri.startswith("http") and ".js" not in uri and ".css" not in uri and not timeline.url:
                    timeline.url = uri
                timeline.resources.append((Resource(url=uri, duration=duration, type=classify_resource(uri)), start))
        elif name == "Load" and timeline.load is None:
            timeline.load = marker_start(marker)
        elif name.startswith("Contentful paint after") and timeline.first_contentful_paint is None:
            match = PAINT_AFTER_RE.search(name)
            if match:
                timeline.first_contentful_paint = float(match.group(1))
                url_match = PAINT_URL_RE.search(name)
                if url_match and not timeline.url:
                    timeline.url = url_match.group(1)
        elif name.startswith("Largest contentful paint after") and timeline.largest_contentful_paint is None:
            match = PAINT_AFTER_RE.search(name)
            if match:
                timeline.largest_contentful_paint = float(match.group(1))

        if name == "Jank" and marker.get("start") and marker.get("end"):
            timeline.janks.append((marker["start"], marker["end"]))

    return timeline


def sample_window(timeline: _Timeline) -> Optional[Tuple[float, float]]:
    """Time range whose samples the summary needs, or None when there is no load window."""
    if not timeline.complete:
        return None
    end = timeline.load
    for start, jank_end in timeline.janks:
        if start >= timeline.navigation_start:
            end = max(end, jank_end)
    return timeline.navigation_start, end


def _resource_stats(timeline: _Timeline) -> Optional[ResourceStats]:
    if not timeline.complete:
        return None
    before_load = [r for r, start in timeline.resources if timeline.navigation_start <= start <= timeline.load]
    if not before_load:
        return None

    by_type = Counter(r.type for r in before_load)
    total = sum(r.duration for r in before_load)
    return ResourceStats(
        total_resources=len(before_load),
        by_type=dict(by_type),
        avg_duration=total / len(before_load),
        max_duration=max(max(r.duration for r in before_load), 0),
        top_resources=sorted(before_load, key=lambda r: r.duration, reverse=True)[:TOP_RESOURCES],
    )


def _iter_samples(samples: dict, start: float, end: float):
    times = samples.get("time", [])
    categories = samples.get("category", [])
    funcs = samples.get("func", [])
    for t, category, func in zip(times, categories, funcs):
        if start <= t <= end:
            yield category, func


def _category_stats(timeline: _Timeline, samples: dict) -> Optional[SampleCategoryStats]:
    if not timeline.complete:
        return None
    by_category = Counter(
        category
        for category, _ in _iter_samples(samples, timeline.navigation_start, timeline.load)
        if category
    )
    total = sum(by_category.values())
    if total == 0:
        return None
    return SampleCategoryStats(total_samples=total, by_category=dict(by_category))


def _jank_periods(timeline: _Timeline, samples: dict) -> List[JankPeriod]:
    if not timeline.complete:
        return []

    periods = []
    for start, end in timeline.janks:
        if start < timeline.navigation_start:
            continue
        functions = Counter()
        categories = Counter()
        for category, func in _iter_samples(samples, start, end):
            if category is not None:
                categories[category] += 1
            if func is not None:
                functions[func] += 1
        periods.append(
            JankPeriod(
                start_time=start - timeline.navigation_start,
                duration=end - start,
                top_functions=functions.most_common(JANK_TOP_FUNCTIONS),
                categories=dict(categories),
            )
        )
    return periods


def summarize_page_load(markers: List[dict], samples: Optional[dict] = None) -> PageLoadSummary:
    samples = samples or {}
    timeline = scan_markers(markers)
    janks = _jank_periods(timeline, samples)

    load = None
    if timeline.complete:
        load = timeline.load - timeline.navigation_start

    return PageLoadSummary(
        url=timeline.url,
        navigation_start=timeline.navigation_start,
        load=load,
        first_contentful_paint=timeline.first_contentful_paint,
        largest_contentful_paint=timeline.largest_contentful_paint,
        resources=_resource_stats(timeline),
        sample_categories=_category_stats(timeline, samples),
        jank_periods=janks or None,
    )


def get_page_load_summary(browser: Browser, url: str, settings: Optional[Settings] = None) -> PageLoadSummary:
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        markers = fetch_markers(page)
        window = sample_window(scan_markers(markers))
        samples = {}
        if window is None:
            log("No Navigation::Start/Load markers, skipping sample categories", level="WARN")
        else:
            samples = evaluate(page, page_scripts.SAMPLES, {"start": window[0], "end": window[1]})
            log(f"Read {len(samples.get('time', []))} samples between {window[0]:.2f} and {window[1]:.2f} ms", level="DEBUG")

    return summarize_page_load(markers, samples)
