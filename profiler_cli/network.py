"""Per-request network timing, split into the phases the profiler UI shows."""

from typing import Dict, List, Optional

from playwright.sync_api import Browser

from .browser import open_profile
from .config import Settings
from .markers import fetch_markers, marker_name, marker_start
from .models import NetworkPhase, NetworkResourceSummary, NetworkResourceTiming

NETWORK_PHASES_IN_ORDER = [
    "startTime",
    "domainLookupStart",
    "domainLookupEnd",
    "connectStart",
    "tcpConnectEnd",
    "secureConnectionStart",
    "connectEnd",
    "requestStart",
    "responseStart",
    "responseEnd",
    "endTime",
]

# Each phase is named after the timestamp that opens it.
PHASE_LABELS = {
    "startTime": "Waiting for socket thread",
    "domainLookupStart": "DNS request",
    "domainLookupEnd": "After DNS request",
    "connectStart": "TCP connection",
    "tcpConnectEnd": "After TCP connection",
    "secureConnectionStart": "Establishing TLS session",
    "connectEnd": "Waiting for HTTP request",
    "requestStart": "HTTP request and waiting for response",
    "responseStart": "HTTP response",
    "responseEnd": "Waiting for main thread",
    "endTime": "End",
}


def network_phases(data: dict) -> List[NetworkPhase]:
    present = [
        (phase, data[phase])
        for phase in NETWORK_PHASES_IN_ORDER
        if isinstance(data.get(phase), (int, float)) and not isinstance(data.get(phase), bool)
    ]
    return [
        NetworkPhase(label=PHASE_LABELS[prev], duration=value - prev_value)
        for (prev, prev_value), (_, value) in zip(present, present[1:])
    ]


def find_navigation_start(markers: List[dict]) -> Optional[float]:
    for marker in markers:
        if marker_name(marker) == "Navigation::Start":
            return marker_start(marker)
    return None


def summarize_network(markers: List[dict]) -> NetworkResourceSummary:
    navigation_start = find_navigation_start(markers)
    resources = []
    phase_totals: Dict[str, float] = {}
    cache_stats: Dict[str, int] = {}

    for marker in markers:
        data = marker.get("data") or {}
        if data.get("type") != "Network" or data.get("status") != "STATUS_STOP":
            continue

        start = marker.get("start") or 0
        end = marker.get("end") or start
        phases = network_phases(data)
        for phase in phases:
            phase_totals[phase.label] = phase_totals.get(phase.label, 0) + phase.duration

        cache = data.get("cache") or "Unknown"
        cache_stats[cache] = cache_stats.get(cache, 0) + 1

        resources.append(
            NetworkResourceTiming(
                url=data.get("URI") or "",
                start_time=start - navigation_start if navigation_start is not None else start,
                duration=end - start,
                status=data.get("status") or "",
                content_type=data.get("contentType"),
                size=data.get("count"),
                http_version=data.get("httpVersion"),
                cache=cache,
                phases=phases,
            )
        )

    resources.sort(key=lambda r: r.start_time)
    return NetworkResourceSummary(
        resources=resources,
        total_resources=len(resources),
        phase_totals=phase_totals,
        cache_stats=cache_stats,
    )


def get_network_resources(browser: Browser, url: str, settings: Optional[Settings] = None) -> NetworkResourceSummary:
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        markers = fetch_markers(page)
    return summarize_network(markers)
