"""Extract information from Firefox Profiler profiles.

Usage:
    profiler-cli <profile-url> --calltree N [--detailed] [--max-paths M]
    profiler-cli <profile-url> --flamegraph [N]
    profiler-cli <profile-url> --top-markers [N]
    profiler-cli <profile-url> --page-load
    profiler-cli <profile-url> --network
    profiler-cli <profile-url> --annotate FUNCTION
    profiler-cli --ai
"""

import argparse
import json
import sys

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .annotate import DEFAULT_CONTEXT, get_function_annotation
from .calltree import get_call_tree_data, get_flamegraph_data
from .config import Settings
from .errors import ConfigError, ProfilerError
from .log import log, set_verbose
from .markers import get_marker_summary
from .models import to_json
from .network import get_network_resources
from .pageload import get_page_load_summary
from .render import (
    render_annotation,
    render_call_tree,
    render_flamegraph,
    render_markers,
    render_network,
    render_page_load,
)

# --top-markers given without a value
TOP_MARKERS_DEFAULT = "default"

FOCUS_MARKER_HINT = [
    "Error: When using --focus-marker with a value starting with '-', use the equals sign syntax:",
    '  --focus-marker="-async,-sync"',
]

MODES = "--calltree <N>, --flamegraph, --top-markers [N], --page-load, --network, or --annotate <FUNCTION>"

AI_GUIDE = """
# profiler-cli: AI Usage Guide

## Purpose
Extract performance data from Firefox Profiler URLs to analyze browser performance bottlenecks.

## Core Commands

### 1. Top functions by self time
    profiler-cli <profile-url> --calltree N
Returns the top N functions sorted by self time (time spent in the function
itself, excluding callees).

### 2. Flamegraph tree view
    profiler-cli <profile-url> --flamegraph [N]
Top-down tree of call stacks. Optionally limit the depth to N levels.
Use it to see caller/callee structure.

### 3. Focus on a function or a marker
    profiler-cli <profile-url> --calltree 10 --focus-function "malloc"
    profiler-cli <profile-url> --flamegraph --focus-marker "Jank"
    profiler-cli <profile-url> --calltree 10 --focus-function "malloc" --focus-marker "Rasterize"
Applies profiler transforms: focus-function keeps only stacks through that
function, focus-marker keeps only samples inside matching markers.

### 4. Top markers
    profiler-cli <profile-url> --top-markers       # top 5 by total and by max duration
    profiler-cli <profile-url> --top-markers 20    # top 20 by frequency

### 5. Page load analysis
    profiler-cli <profile-url> --page-load
Navigation timing (FCP, LCP, Load) with a text timeline, resource loading
statistics by type, the 10 slowest resource loads, CPU time by category and
jank periods with the functions that caused them.

### 6. Network analysis
    profiler-cli <profile-url> --network
Cache statistics (Hit/Miss/Unknown), accumulated phase totals (DNS, TCP, TLS,
request, response) and per-resource phase breakdown sorted by start time
relative to Navigation::Start.

### 7. Detailed call paths
    profiler-cli <profile-url> --calltree 5 --detailed --max-paths 3
Shows the call stacks that lead to each function.

### 8. Annotated source and disassembly
    profiler-cli <profile-url> --annotate "FunctionName" [--context 10] [--no-asm] [--no-source]
Source of the function with per-line self samples, and its disassembly with
per-instruction samples interleaved with the source lines. Needs a symbol
server that serves /asm/v1 and /source/v1 (for example `samply`); the profile
URL's symbolServer parameter is used when present.

### Machine-readable output
Add --json to any command to print the extracted data as JSON.

## Understanding the Output

### Self time vs total time
- Self time: samples where the function itself was executing.
- Total time: all samples where the function was on the stack.

### Samples
Profiles are sampled at regular intervals (typically 1ms); each sample is one
snapshot of the call stack. More samples means more time spent.

### Call paths
--detailed prints stacks bottom-up (root at the bottom); --flamegraph prints
them top-down.

## Common Analysis Patterns
1. Page load bottlenecks: --page-load, then --network.
2. Jank: --calltree 20 --focus-marker "Jank", or --page-load.
3. Hot function: --calltree 20, then --flamegraph 5 --focus-function NAME,
   then --annotate NAME.
4. Call context: --flamegraph 10, or --calltree 5 --detailed --max-paths 5.

## Profile URL Sources
- Firefox Profiler: profiler.firefox.com
- Shared profiles: share.firefox.dev/<profile-id>

## Tips
1. Start with --page-load for page load profiles.
2. Self time is the most actionable number.
3. System calls such as __psynch_cvwait are normal browser internals.
4. Compare functions within one profile, not across profiles.
5. Jank over 50ms blocks user interaction.

## Error Handling
- Function not found: it does not appear in the profile's function table.
- Profile fails to load: check the URL is a Firefox Profiler share URL.
- Timeouts: large profiles may take 30+ seconds; raise --timeout.
- Values starting with '-' need the equals syntax: --focus-marker="-async,-sync"
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="profiler-cli",
        description="Extract information from Firefox Profiler profiles.",
    )
    parser.add_argument("url", nargs="?", help="Firefox Profiler URL (share.firefox.dev or profiler.firefox.com)")

    modes = parser.add_argument_group("views")
    modes.add_argument("--calltree", type=int, metavar="N", help="Get top N functions by self time")
    modes.add_argument(
        "--flamegraph", type=int, nargs="?", const=0, metavar="N",
        help="Show flamegraph-style tree view of call stacks (optional: max depth)",
    )
    modes.add_argument(
        "--top-markers", type=int, nargs="?", const=TOP_MARKERS_DEFAULT, metavar="N",
        help="Show top 5 markers by total and by max duration, or top N markers by frequency",
    )
    modes.add_argument("--page-load", action="store_true", help="Show page load performance summary")
    modes.add_argument("--network", action="store_true", help="Show detailed network resource timing")
    modes.add_argument("--annotate", metavar="FUNCTION", help="Show annotated source and disassembly of a function")

    filters = parser.add_argument_group("filters")
    filters.add_argument("--focus-function", help="Focus the call tree on a function by exact name")
    filters.add_argument(
        "--focus-marker",
        help="Only keep samples inside markers matching this search (use --focus-marker=VALUE for values starting with -)",
    )
    filters.add_argument("--detailed", action="store_true", help="Show call paths for each function")
    filters.add_argument("--max-paths", type=int, default=5, help="Maximum call paths per function in detailed mode")
    filters.add_argument("--context", type=int, default=DEFAULT_CONTEXT, help="Source lines of context when function bounds are unclear")
    filters.add_argument("--no-source", action="store_true", help="Skip the annotated source with --annotate")
    filters.add_argument("--no-asm", action="store_true", help="Skip the disassembly with --annotate")

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--json", action="store_true", help="Print extracted data as JSON")
    runtime.add_argument("--timeout", type=float, default=None, help="Seconds to wait for the profile to load (0 waits forever)")
    runtime.add_argument("--headed", action="store_true", help="Show the browser window")
    runtime.add_argument("--symbol-server", default=None, help="Symbol server URL (overrides PROFILER_CLI_SYMBOL_SERVER env)")
    runtime.add_argument("--screenshot", metavar="PATH", help="Save a screenshot of the loaded profile")
    runtime.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    runtime.add_argument("--ai", action="store_true", help="Show AI-focused documentation")
    return parser


def selected_modes(args) -> list:
    return [
        name
        for name, given in (
            ("calltree", args.calltree is not None),
            ("flamegraph", args.flamegraph is not None),
            ("top-markers", args.top_markers is not None),
            ("page-load", args.page_load),
            ("network", args.network),
            ("annotate", args.annotate is not None),
        )
        if given
    ]


def focus_marker_problems(argv) -> list:
    """Hint lines when --focus-marker is followed by nothing or by a dash-prefixed value."""
    for i, token in enumerate(argv):
        if token == "--focus-marker" and (i + 1 == len(argv) or argv[i + 1].startswith("-")):
            return FOCUS_MARKER_HINT
    return []


def validate_args(args) -> list:
    """Usage problems as lines to print, empty when the arguments are usable."""
    if not args.url:
        return ["Please provide a profile URL"]

    if args.focus_marker == "":
        return FOCUS_MARKER_HINT

    modes = selected_modes(args)
    if not modes:
        return [
            f"Please specify one of: {MODES}",
            "Note: --focus-function can be used with --calltree or --flamegraph to filter results",
        ]
    if len(modes) > 1:
        return [f"Please specify only one of: {MODES}"]

    if args.calltree is not None and args.calltree < 1:
        return ["--calltree needs a positive number of functions"]
    if args.flamegraph is not None and args.flamegraph < 0:
        return ["--flamegraph depth must not be negative"]
    if args.top_markers not in (None, TOP_MARKERS_DEFAULT) and args.top_markers < 1:
        return ["--top-markers needs a positive number of markers"]
    if args.max_paths < 1:
        return ["--max-paths needs a positive number"]
    if args.no_source and args.no_asm:
        return ["--no-source and --no-asm together leave nothing to show"]
    return []


def build_settings(args, environ=None) -> Settings:
    settings = Settings.from_env(environ)
    if args.timeout is not None:
        if args.timeout < 0:
            raise ConfigError("--timeout must not be negative")
        settings.load_timeout_ms = int(args.timeout * 1000)
    if args.headed:
        settings.headless = False
    if args.symbol_server:
        settings.symbol_server = args.symbol_server.rstrip("/")
    if args.screenshot:
        settings.screenshot = args.screenshot
    return settings


def run_mode(browser, args, settings: Settings):
    """Extract the requested view. Returns (data, report lines)."""
    mode = selected_modes(args)[0]

    if mode not in ("calltree", "flamegraph") and (args.focus_function or args.focus_marker):
        log("--focus-function/--focus-marker only apply to --calltree and --flamegraph", level="WARN")

    if mode == "calltree":
        nodes = get_call_tree_data(
            browser, args.url, args.calltree, args.detailed, args.focus_function, args.focus_marker, settings
        )
        return nodes, render_call_tree(
            nodes, args.calltree, args.detailed, args.max_paths, args.focus_function, args.focus_marker
        )

    if mode == "flamegraph":
        max_depth = args.flamegraph or None
        roots = get_flamegraph_data(browser, args.url, max_depth, args.focus_function, args.focus_marker, settings)
        return roots, render_flamegraph(roots, max_depth, args.focus_function, args.focus_marker)

    if mode == "top-markers":
        summaries = get_marker_summary(browser, args.url, settings)
        top_n = None if args.top_markers == TOP_MARKERS_DEFAULT else args.top_markers
        return summaries, render_markers(summaries, top_n)

    if mode == "page-load":
        summary = get_page_load_summary(browser, args.url, settings)
        return summary, render_page_load(summary)

    if mode == "network":
        summary = get_network_resources(browser, args.url, settings)
        return summary, render_network(summary)

    annotation = get_function_annotation(
        browser,
        args.url,
        args.annotate,
        settings,
        include_source=not args.no_source,
        include_asm=not args.no_asm,
        context=args.context,
    )
    return annotation, render_annotation(annotation)


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    problems = focus_marker_problems(argv)
    if problems:
        for line in problems:
            print(line, file=sys.stderr)
        return 1

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.ai:
        print(AI_GUIDE)
        return 0

    problems = validate_args(args)
    if problems:
        for line in problems:
            print(line, file=sys.stderr)
        return 1

    set_verbose(args.verbose)

    try:
        settings = build_settings(args)
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=settings.headless)
            try:
                data, lines = run_mode(browser, args, settings)
            finally:
                browser.close()
    except ProfilerError as e:
        log(str(e), level="ERROR")
        return 1
    except PlaywrightError as e:
        log(f"Browser error: {e}", level="ERROR")
        log("If Chromium is missing, run: playwright install chromium")
        return 1
    except KeyboardInterrupt:
        log("Interrupted by user", level="WARN")
        return 130

    if args.json:
        print(json.dumps(to_json(data), indent=2))
    else:
        print("\n".join(lines))
    return 0

