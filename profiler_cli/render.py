"""Plain-text reports. Each function returns the lines to print."""

import math
from typing import List, Optional

from .annotate import interleave
from .markers import top_by_max_duration, top_by_total_duration
from .models import (
    CallTreeNode,
    FlameNode,
    FunctionAnnotation,
    Instruction,
    MarkerSummary,
    NetworkResourceSummary,
    PageLoadSummary,
)

BANNER = "═" * 79
TIMELINE_WIDTH = 80
DEFAULT_TOP_MARKERS = 5


def section(title: str) -> str:
    return f"───── {title} ─────"


def _filter_text(function_name=None, marker_search=None, max_depth=None) -> str:
    filters = []
    if function_name:
        filters.append(f'focus: "{function_name}"')
    if marker_search:
        filters.append(f'marker: "{marker_search}"')
    if max_depth:
        filters.append(f"max depth: {max_depth}")
    return f" ({', '.join(filters)})" if filters else ""


def _truncate(text: str, limit: int) -> str:
    return text[: limit - 3] + "..." if len(text) > limit else text


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def render_call_tree(
    nodes: List[CallTreeNode],
    top_n: int,
    detailed: bool = False,
    max_paths: int = 5,
    function_name: Optional[str] = None,
    marker_search: Optional[str] = None,
) -> List[str]:
    lines = ["", f"Top {top_n} functions by self time{_filter_text(function_name, marker_search)}:", ""]
    if not nodes:
        lines += ["No data found in profile.", ""]

    for i, node in enumerate(nodes, 1):
        lines.append(f"{i}. {node.name} - {node.self_time} samples ({node.total_time} total)")
        if not detailed or node.call_paths is None:
            continue

        lines.append("")
        paths = sorted(node.call_paths, key=lambda p: p.samples, reverse=True)
        shown = paths[:max_paths]
        for j, path in enumerate(shown, 1):
            pct = _pct(path.samples, node.self_time)
            lines.append(f"   Call path #{j} - {path.samples} samples ({pct:.1f}% of this function):")
            # root at the bottom
            for frame in reversed(path.stack):
                lines.append(f"     {frame}")
            lines.append("")

        remaining = paths[len(shown):]
        if remaining:
            plural = "s" if len(remaining) > 1 else ""
            samples = sum(p.samples for p in remaining)
            lines += [f"   [{len(remaining)} more call path{plural}, accounting for {samples} samples]", ""]

    return lines


def flame_tree_lines(node: FlameNode, total_samples: int, indent: str = "", is_last: bool = True, is_root: bool = True) -> List[str]:
    prefix = "" if is_root else ("└─ " if is_last else "├─ ")
    self_text = f" [self: {node.self_time}]" if node.self_time > 0 else ""
    lines = [
        f"{indent}{prefix}{node.name} ({_pct(node.total_time, total_samples):.1f}%, {node.total_time} samples){self_text}"
    ]

    child_indent = "" if is_root else indent + ("   " if is_last else "│  ")
    for i, child in enumerate(node.children):
        lines += flame_tree_lines(child, total_samples, child_indent, i == len(node.children) - 1, False)
    return lines


def render_flamegraph(
    roots: List[FlameNode],
    max_depth: Optional[int] = None,
    function_name: Optional[str] = None,
    marker_search: Optional[str] = None,
) -> List[str]:
    lines = ["", f"Flamegraph{_filter_text(function_name, marker_search, max_depth)}:", ""]
    if not roots:
        return lines + ["No data found in profile.", ""]

    total = sum(root.total_time for root in roots)
    for root in roots:
        lines += flame_tree_lines(root, total)
        lines.append("")
    return lines


def render_markers(summaries: List[MarkerSummary], top_n: Optional[int] = None) -> List[str]:
    """Top 5 by total and by max duration, or the ``top_n`` most frequent in full."""
    lines = ["", f"Total unique markers: {len(summaries)}", ""]

    if top_n is None:
        by_total = top_by_total_duration(summaries, DEFAULT_TOP_MARKERS)
        by_max = top_by_max_duration(summaries, DEFAULT_TOP_MARKERS)

        lines += [f"Top {len(by_total)} markers by total duration:", ""]
        for i, m in enumerate(by_total, 1):
            lines.append(f"{i}. {m.name} - {m.total_duration:.2f} ms total (count: {m.count}, avg: {m.avg_duration:.2f} ms)")

        lines += ["", f"Top {len(by_max)} markers by max single instance duration:", ""]
        for i, m in enumerate(by_max, 1):
            lines.append(f"{i}. {m.name} - {m.max_duration:.2f} ms max (total: {m.total_duration:.2f} ms, count: {m.count})")
        return lines

    lines += ["Marker Summary (sorted by frequency):", ""]
    if top_n < len(summaries):
        lines += [f"Showing top {top_n} markers:", ""]

    for i, m in enumerate(summaries[:top_n], 1):
        lines += [
            f"{i}. {m.name}",
            f"   Count: {m.count}",
            f"   Total duration: {m.total_duration:.2f} ms",
            f"   Avg duration: {m.avg_duration:.2f} ms",
            f"   Min duration: {m.min_duration:.2f} ms",
            f"   Max duration: {m.max_duration:.2f} ms",
            "",
        ]
    return lines


def render_timeline(metrics: List[tuple], width: int = TIMELINE_WIDTH) -> List[str]:
    """ASCII axis with a tick per (label, value) and the labels stacked underneath."""
    max_time = max(value for _, value in metrics)
    max_text = f"{max_time:.0f}ms"
    lines = ["0ms" + " " * (width - 3 - len(max_text)) + max_text]

    def column(value):
        if max_time <= 0:
            return 0
        return min(max(math.floor(value / max_time * (width - 1)), 0), width - 1)

    positions = [(label, column(value)) for label, value in sorted(metrics, key=lambda m: m[1])]

    axis = ["-"] * width
    for _, pos in positions:
        axis[pos] = "|"
    lines.append("".join(axis))

    for i, (label, pos) in enumerate(positions):
        row = [" "] * width
        for _, later in positions[i:]:
            row[later] = "|"

        label_start = pos
        if i == len(positions) - 1:
            label_start = pos + 2
            if label_start + len(label) > width:
                label_start = max(0, pos - len(label) - 1)

        if label_start >= 0 and label_start + len(label) <= width:
            row[label_start:label_start + len(label)] = list(label)
        lines.append("".join(row))

    return lines


def render_page_load(summary: PageLoadSummary) -> List[str]:
    lines = ["", BANNER, "  Page Load Summary", BANNER, ""]
    lines += [f"URL: {summary.url}" if summary.url else "URL: Not found", ""]

    metrics = [
        (name, value)
        for name, value in (
            ("Load", summary.load),
            ("FCP", summary.first_contentful_paint),
            ("LCP", summary.largest_contentful_paint),
        )
        if value is not None
    ]

    if metrics:
        lines += render_timeline(metrics)
        lines += ["", section("Navigation Timing"), ""]
        for name, value in sorted(metrics, key=lambda m: m[1]):
            lines.append(f"  {name:<4}: {value:.2f} ms")
    else:
        lines += ["", "No page load metrics found."]

    res = summary.resources
    if res:
        lines += [
            "",
            section("Resources"),
            "",
            f"  Total resources: {res.total_resources}",
            f"  Average duration: {res.avg_duration:.2f} ms",
            f"  Max duration: {res.max_duration:.2f} ms",
            "",
            "  By type:",
        ]
        for kind, count in sorted(res.by_type.items(), key=lambda kv: kv[1], reverse=True):
            lines.append(f"    {kind}: {count}")

        lines += ["", "  Top 10 longest loads:"]
        for i, resource in enumerate(res.top_resources, 1):
            filename = resource.url.split("/")[-1] or resource.url
            lines.append(f"    {i}. {_truncate(filename, 60)} - {resource.duration:.2f} ms ({resource.type})")

    cats = summary.sample_categories
    if cats:
        lines += ["", section("Categories"), "", f"  Total samples: {cats.total_samples}", "", "  By category:"]
        for category, count in sorted(cats.by_category.items(), key=lambda kv: kv[1], reverse=True):
            lines.append(f"    {category}: {count} ({_pct(count, cats.total_samples):.1f}%)")

    if summary.jank_periods:
        lines += ["", section("Jank"), "", f"  Total jank periods: {len(summary.jank_periods)}", ""]
        for i, jank in enumerate(summary.jank_periods, 1):
            lines.append(f"  Jank {i}: {jank.start_time:.2f} ms - {jank.duration:.2f} ms duration")
            if jank.top_functions:
                lines.append("    Top functions:")
                for name, samples in jank.top_functions:
                    lines.append(f"      {name} - {samples} samples")
            if jank.categories:
                lines.append("    Categories:")
                for category, count in sorted(jank.categories.items(), key=lambda kv: kv[1], reverse=True):
                    lines.append(f"      {category}: {count}")
            lines.append("")

    return lines


def render_network(summary: NetworkResourceSummary) -> List[str]:
    lines = ["", BANNER, "  Network Resources", BANNER, ""]
    lines += [f"Total resources: {summary.total_resources}", "", section("Cache Statistics"), ""]

    for cache, count in sorted(summary.cache_stats.items(), key=lambda kv: kv[1], reverse=True):
        lines.append(f"  {cache}: {count} ({_pct(count, summary.total_resources):.1f}%)")

    lines += ["", section("Timing Totals"), ""]
    for phase, total in sorted(summary.phase_totals.items(), key=lambda kv: kv[1], reverse=True):
        lines.append(f"  {phase}: {total:.2f} ms")

    lines += ["", section("Resources (sorted by start time relative to Navigation::Start)"), ""]
    for i, res in enumerate(summary.resources, 1):
        lines += [
            f"{i}. {_truncate(res.url, 100)}",
            f"   Start: {res.start_time:.2f} ms | Duration: {res.duration:.2f} ms",
        ]
        if res.http_version:
            lines.append(f"   HTTP: {res.http_version}")
        if res.cache:
            lines.append(f"   Cache: {res.cache}")
        if res.content_type:
            lines.append(f"   Content-Type: {res.content_type}")
        if res.size is not None:
            lines.append(f"   Size: {res.size / 1024:.2f} KB")
        if res.phases:
            lines.append("   Phases:")
            for phase in res.phases:
                lines.append(f"     {phase.label}: {phase.duration:.2f} ms")
        lines.append("")

    return lines


def render_annotation(annotation: FunctionAnnotation) -> List[str]:
    lines = ["", f"Function: {annotation.name}"]
    if annotation.library:
        lines.append(f"Library: {annotation.library}")
    if annotation.file:
        lines.append(f"File: {annotation.file}")
    lines.append(f"Samples: {annotation.self_samples} self, {annotation.total_samples} total")

    numbers = [line.number for line in annotation.source] + [i.line for i in annotation.instructions if i.line]
    width = len(str(max(numbers))) if numbers else 1

    if annotation.source:
        lines += ["", section("Source"), ""]
        for line in annotation.source:
            lines.append(f"{line.samples or '':>6}  {line.number:>{width}} | {line.text}")

    if annotation.instructions:
        header = "Disassembly"
        if annotation.arch:
            header += f" ({annotation.arch})"
        lines += ["", section(header), ""]

        source_text = {line.number: line.text for line in annotation.source}
        for row in interleave(annotation.instructions, source_text):
            if isinstance(row, Instruction):
                lines.append(f"{row.samples or '':>6}    0x{row.address:x}  {row.text}")
            else:
                lines.append(f"        {row.number:>{width}} | {row.text.strip()}")

    lines.append("")
    return lines
