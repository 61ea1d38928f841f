"""Top functions by self time, and the top-down flamegraph tree."""

from typing import List, Optional

from playwright.sync_api import Browser

from . import page_scripts
from .browser import apply_transforms, evaluate, open_profile, prepare_call_tree
from .config import Settings
from .log import log
from .models import CallPath, CallTreeNode, FlameNode


def top_call_tree_nodes(raw_nodes: list, top_n: int) -> List[CallTreeNode]:
    nodes = []
    for raw in raw_nodes:
        call_paths = None
        if raw.get("callPaths") is not None:
            call_paths = [CallPath(stack=list(p["stack"]), samples=p["samples"]) for p in raw["callPaths"]]
        nodes.append(
            CallTreeNode(
                name=raw["name"],
                self_time=raw.get("selfTime", 0),
                total_time=raw.get("totalTime", 0),
                stack=list(raw.get("stack") or [raw["name"]]),
                call_paths=call_paths,
            )
        )
    nodes.sort(key=lambda n: n.self_time, reverse=True)
    return nodes[:top_n]


def build_flame_nodes(raw_roots: list) -> List[FlameNode]:
    """Convert the in-page tree, heaviest subtree first at every level."""

    def build(raw: dict) -> FlameNode:
        children = [build(c) for c in raw.get("children", [])]
        children.sort(key=lambda n: n.total_time, reverse=True)
        return FlameNode(
            name=raw["name"],
            self_time=raw.get("selfTime", 0),
            total_time=raw.get("totalTime", 0),
            children=children,
        )

    roots = [build(r) for r in raw_roots]
    roots.sort(key=lambda n: n.total_time, reverse=True)
    return roots


def get_call_tree_data(
    browser: Browser,
    url: str,
    top_n: int,
    detailed: bool = False,
    function_name: Optional[str] = None,
    marker_search: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> List[CallTreeNode]:
    """Top ``top_n`` functions by self time, read from the inverted call tree.

    Roots of the inverted tree are the functions samples ended in, so their
    self time is the function's own time. With ``detailed`` each node also
    carries every caller path that leads to it.
    """
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        prepare_call_tree(page, inverted=True, settings=settings)
        apply_transforms(page, function_name, marker_search, settings.calltree_marker_delay, settings)
        result = evaluate(page, page_scripts.CALL_TREE_ROOTS, {"topN": top_n, "detailed": detailed})

    total = result.get("totalNodes", 0)
    if total > 0:
        log(f"Collected {total} total nodes")
    return top_call_tree_nodes(result.get("nodes", []), top_n)


def get_flamegraph_data(
    browser: Browser,
    url: str,
    max_depth: Optional[int] = None,
    function_name: Optional[str] = None,
    marker_search: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> List[FlameNode]:
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        prepare_call_tree(page, inverted=False, settings=settings)
        apply_transforms(page, function_name, marker_search, settings.flamegraph_marker_delay, settings)
        result = evaluate(page, page_scripts.FLAME_TREE, {"maxDepth": max_depth})

    return build_flame_nodes(result.get("roots", []))
