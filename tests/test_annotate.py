import json

import httpx
import pytest

from profiler_cli import annotate, page_scripts
from profiler_cli.annotate import (
    assign_lines,
    disassembly_range,
    fetch_disassembly,
    fetch_source,
    get_function_annotation,
    guess_function_bounds,
    interleave,
    source_download_url,
    symbol_server_for,
)
from profiler_cli.errors import FunctionNotFoundError, SymbolServerError
from profiler_cli.models import Instruction, SourceLine

C_SOURCE = """#include <stdlib.h>

static int helper(int x) {
  return x * 2;
}

int Compute(int* data, size_t n)
{
  int sum = 0;
  for (size_t i = 0; i < n; i++) {
    sum += helper(data[i]);
  }
  return sum;
}

int main() { return 0; }
"""

PY_SOURCE = """import os

class Foo:
    def bar(self, items):
        total = 0
        for item in items:
            total += item

        return total

    def baz(self):
        pass
"""

RUST_SOURCE = """impl Tree {
    pub fn insert(&mut self, key: u64) {
        let node = self.find(key);
        node.push(key);
    }
}
"""

LIB = {"name": "libcompute.so", "debugName": "libcompute.so", "debugId": "ABCDEF0123", "codeId": None, "arch": "x86_64"}


def test_bounds_c_function():
    assert guess_function_bounds(C_SOURCE.splitlines(), {11, 13}) == (7, 14)


def test_bounds_python_method():
    assert guess_function_bounds(PY_SOURCE.splitlines(), [7]) == (4, 9)


def test_bounds_rust_method():
    assert guess_function_bounds(RUST_SOURCE.splitlines(), [3, 4]) == (2, 5)


JS_SOURCE = """import x from 'y';

export async function load(url) {
  const res = await fetch(url);
  return res.json();
}

const parse = (text) => {
  const rows = text.split('\\n');
  return rows.map(Number);
};
"""


def test_bounds_js_function_and_arrow():
    lines = JS_SOURCE.splitlines()

    assert guess_function_bounds(lines, [4, 5]) == (3, 6)
    assert guess_function_bounds(lines, [9, 10]) == (8, 11)


def test_bounds_upward_scan_is_capped():
    lines = ["int f() {"] + ["  x++;"] * 300 + ["}"]

    assert guess_function_bounds(lines, [230], context=5) == (225, 235)


def test_bounds_never_end_before_last_sampled_line():
    assert guess_function_bounds(C_SOURCE.splitlines(), {11, 16}) == (7, 16)


def test_bounds_fall_back_to_context():
    lines = ["x = 1;"] * 20

    assert guess_function_bounds(lines, [10], context=3) == (7, 13)


def test_bounds_reject_lines_outside_file():
    with pytest.raises(ValueError):
        guess_function_bounds(["a", "b"], [40])


def test_assign_lines_and_interleave():
    instructions = [
        Instruction(address=0x0F0, text="nop"),
        Instruction(address=0x100, text="push rbp"),
        Instruction(address=0x101, text="mov rbp, rsp"),
        Instruction(address=0x104, text="add eax, 1", samples=3),
        Instruction(address=0x108, text="ret"),
    ]

    assign_lines(instructions, {0x100: 10, 0x104: 11})
    rows = interleave(instructions, {10: "fn f() {", 11: "    x + 1"})

    assert [i.line for i in instructions] == [None, 10, 10, 11, 11]
    assert [(type(r).__name__, getattr(r, "number", None) or r.text) for r in rows] == [
        ("Instruction", "nop"),
        ("SourceLine", 10),
        ("Instruction", "push rbp"),
        ("Instruction", "mov rbp, rsp"),
        ("SourceLine", 11),
        ("Instruction", "add eax, 1"),
        ("Instruction", "ret"),
    ]
    assert isinstance(rows[1], SourceLine) and rows[1].text == "fn f() {"


@pytest.mark.parametrize(
    "file_name, expected",
    [
        (
            "hg:hg.mozilla.org/mozilla-central:dom/base/Element.cpp:abc123",
            "https://hg.mozilla.org/mozilla-central/raw-file/abc123/dom/base/Element.cpp",
        ),
        (
            "git:github.com/rust-lang/rust:library/core/src/ptr/mod.rs:deadbeef",
            "https://raw.githubusercontent.com/rust-lang/rust/deadbeef/library/core/src/ptr/mod.rs",
        ),
        (
            "s3:gecko-generated-sources:a1b2/ipc/foo.cpp:",
            "https://gecko-generated-sources.s3.amazonaws.com/a1b2/ipc/foo.cpp",
        ),
        ("https://example.com/app.js", "https://example.com/app.js"),
        ("/home/me/src/main.rs", None),
    ],
)
def test_source_download_url(file_name, expected):
    assert source_download_url(file_name) == expected


def test_symbol_server_from_profile_url():
    url = "https://profiler.firefox.com/from-url/x/calltree/?symbolServer=http%3A%2F%2F127.0.0.1%3A3001%2Ftoken&v=12"

    assert symbol_server_for(url, "https://symbols.test") == "http://127.0.0.1:3001/token"
    assert symbol_server_for("https://profiler.firefox.com/public/x/", "https://symbols.test/") == "https://symbols.test"


def test_disassembly_range():
    assert disassembly_range({"symbolAddress": 0x1000, "symbolSize": 0x80}) == (0x1000, 0x80)
    assert disassembly_range({"symbolAddress": 0x1000, "selfByAddress": {"4112": 1}}) == (0x1000, 0x40)
    assert disassembly_range({"selfByAddress": {"4096": 1, "4496": 2}}) == (0x1000, 401)
    with pytest.raises(SymbolServerError):
        disassembly_range({"selfByAddress": {}})


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_fetch_disassembly_makes_addresses_absolute():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "startAddress": "0x1000",
                "size": "0x20",
                "arch": "x86_64",
                "syntax": ["Intel"],
                "instructions": [[0, "push rbp"], [1, "mov rbp, rsp"]],
            },
        )

    details = {"lib": LIB, "symbolAddress": 0x1000, "symbolSize": 0x20}
    with _client(handler) as client:
        arch, start, size, instructions = fetch_disassembly(client, "http://sym.test", details)

    assert seen["path"] == "/asm/v1"
    assert seen["body"]["startAddress"] == "0x1000"
    assert seen["body"]["debugId"] == "ABCDEF0123"
    assert (arch, start, size) == ("x86_64", 0x1000, 0x20)
    assert instructions == [(0x1000, "push rbp"), (0x1001, "mov rbp, rsp")]


def test_fetch_disassembly_http_error():
    details = {"lib": LIB, "symbolAddress": 0x1000, "symbolSize": 0x20}
    with _client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(SymbolServerError, match="404"):
            fetch_disassembly(client, "http://sym.test", details)


def test_fetch_source_through_symbol_server():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"file": "/builds/compute.c", "source": C_SOURCE})

    details = {"fileName": "/builds/compute.c", "lib": LIB, "addressToLine": {"4096": 7}}
    with _client(handler) as client:
        assert fetch_source(client, "http://sym.test", details) == C_SOURCE

    assert seen["body"]["moduleOffset"] == "0x1000"
    assert seen["body"]["file"] == "/builds/compute.c"


DETAILS = {
    "found": True,
    "name": "Compute",
    "fileName": "hg:hg.mozilla.org/mozilla-central:src/compute.c:rev1",
    "lib": LIB,
    "symbolAddress": 0x1000,
    "symbolSize": 12,
    "selfSamples": 5,
    "totalSamples": 9,
    "selfByAddress": {"4100": 5},
    "selfByLine": {"11": 5},
    "addressToLine": {"4096": 7, "4100": 11},
}

PAGE_URL = "https://profiler.firefox.com/from-url/x/calltree/?symbolServer=http%3A%2F%2Fsym.test"


def _patch_client(monkeypatch, handler):
    real_client = httpx.Client
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(annotate.httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs))


def test_get_function_annotation(make_browser, settings, monkeypatch):
    def handler(request):
        if request.url.host == "hg.mozilla.org":
            assert request.url.path == "/mozilla-central/raw-file/rev1/src/compute.c"
            return httpx.Response(200, text=C_SOURCE)
        assert str(request.url) == "http://sym.test/asm/v1"
        return httpx.Response(
            200,
            json={"startAddress": "0x1000", "size": "0xc", "instructions": [[0, "push rbp"], [4, "add eax, [rdi]"], [8, "ret"]]},
        )

    _patch_client(monkeypatch, handler)
    fake_browser, page = make_browser({page_scripts.FUNCTION_DETAILS: DETAILS}, url=PAGE_URL)

    annotation = get_function_annotation(fake_browser, PAGE_URL, "Compute", settings)

    assert page.evaluated(page_scripts.FUNCTION_DETAILS) == [{"functionName": "Compute"}]
    assert [line.number for line in annotation.source] == list(range(7, 15))
    assert {line.number: line.samples for line in annotation.source}[11] == 5
    assert [(i.address, i.samples, i.line) for i in annotation.instructions] == [
        (0x1000, 0, 7),
        (0x1004, 5, 11),
        (0x1008, 0, 11),
    ]
    assert annotation.library == "libcompute.so"
    assert annotation.arch == "x86_64"
    assert annotation.start_address == 0x1000


def test_get_function_annotation_source_only(make_browser, settings, monkeypatch):
    requests = []

    def handler(request):
        requests.append(str(request.url))
        return httpx.Response(200, text=C_SOURCE)

    _patch_client(monkeypatch, handler)
    fake_browser, _ = make_browser({page_scripts.FUNCTION_DETAILS: DETAILS}, url=PAGE_URL)

    annotation = get_function_annotation(fake_browser, PAGE_URL, "Compute", settings, include_asm=False)

    assert annotation.instructions == []
    assert len(requests) == 1


def test_get_function_annotation_missing_function(make_browser, settings):
    fake_browser, _ = make_browser({page_scripts.FUNCTION_DETAILS: {"found": False}})

    with pytest.raises(FunctionNotFoundError, match="Nope"):
        get_function_annotation(fake_browser, PAGE_URL, "Nope", settings)


def test_get_function_annotation_nothing_available(make_browser, settings, monkeypatch):
    _patch_client(monkeypatch, lambda request: httpx.Response(404))
    fake_browser, _ = make_browser({page_scripts.FUNCTION_DETAILS: DETAILS}, url=PAGE_URL)

    with pytest.raises(SymbolServerError, match="Neither source nor disassembly"):
        get_function_annotation(fake_browser, PAGE_URL, "Compute", settings)
