"""Disassembly and annotated source for a single hot function.

The profile only knows which addresses and lines were sampled. Instructions
come from the symbol server's ``/asm/v1`` endpoint, source text from the
file's download recipe or ``/source/v1``. Function boundaries in the source
are guessed from definition-looking lines and indentation.
"""

import bisect
import re
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urlparse

import httpx
from playwright.sync_api import Browser

from . import page_scripts
from .browser import evaluate, open_profile
from .config import Settings
from .errors import FunctionNotFoundError, SymbolServerError
from .log import log
from .models import FunctionAnnotation, Instruction, SourceLine

DEFAULT_CONTEXT = 5
MAX_SCAN = 200  # lines searched above/below the sampled range
MIN_ASM_SPAN = 0x40

_C_KEYWORDS = r"(?:if|for|while|switch|return|else|do|case|namespace|class|struct|enum|union|typedef)\b"

DEFINITION_PATTERNS = [
    # Rust
    re.compile(r'^\s*(pub(\([\w:]+\))?\s+)?(const\s+)?(async\s+)?(unsafe\s+)?(extern\s+"\w+"\s+)?fn\s+\w+'),
    # Python
    re.compile(r"^\s*(async\s+)?def\s+\w+\s*\("),
    # JS
    re.compile(r"^\s*(export\s+)?(default\s+)?(async\s+)?function\b"),
    re.compile(r"^\s*((const|let|var)\s+)?[\w$.]+\s*[:=]\s*(async\s+)?(function\b|\([^)]*\)\s*=>)"),
    # C/C++ signature starting at column 0
    re.compile(r"^(?!" + _C_KEYWORDS + r")[A-Za-z_~][\w:<>,*&\s~]*\("),
]


def _indent(text: str) -> int:
    text = text.expandtabs(4)
    return len(text) - len(text.lstrip())


def is_definition(text: str) -> bool:
    if text.rstrip().endswith(";"):
        return False
    return any(p.match(text) for p in DEFINITION_PATTERNS)


def guess_function_bounds(lines: List[str], sampled_lines, context: int = DEFAULT_CONTEXT) -> Tuple[int, int]:
    """Best-effort 1-based inclusive line range of the function around ``sampled_lines``."""
    n = len(lines)
    sampled = [line for line in sampled_lines if 1 <= line <= n]
    if not sampled:
        raise ValueError("no sampled line falls inside the source file")
    first, last = min(sampled), max(sampled)

    start = None
    for number in range(first, max(0, first - MAX_SCAN), -1):
        if is_definition(lines[number - 1]):
            start = number
            break
    if start is None:
        return max(1, first - context), min(n, last + context)

    definition = lines[start - 1]
    indent = _indent(definition)
    scan_end = min(n, last + MAX_SCAN)
    end = None

    if definition.rstrip().endswith(":"):
        last_code = start
        for number in range(start + 1, scan_end + 1):
            text = lines[number - 1]
            if not text.strip():
                continue
            if _indent(text) <= indent:
                end = last_code
                break
            last_code = number
        else:
            if scan_end == n:
                end = last_code
    else:
        for number in range(start + 1, scan_end + 1):
            text = lines[number - 1]
            if text.strip().startswith("}") and _indent(text) <= indent:
                end = number
                break

    if end is None:
        end = min(n, last + context)
    return start, max(end, last)


def assign_lines(instructions: List[Instruction], address_to_line: Dict[int, int]):
    """Give each instruction the line of the nearest sampled frame address at or below it."""
    known = sorted(address_to_line)
    for instruction in instructions:
        i = bisect.bisect_right(known, instruction.address)
        instruction.line = address_to_line[known[i - 1]] if i else None


def interleave(instructions: List[Instruction], source_text: Dict[int, str]) -> List[Union[SourceLine, Instruction]]:
    """Instructions in address order, each run preceded by the source line it came from."""
    rows: List[Union[SourceLine, Instruction]] = []
    current = None
    for instruction in instructions:
        if instruction.line is not None and instruction.line != current:
            current = instruction.line
            rows.append(SourceLine(number=current, text=source_text.get(current, "")))
        rows.append(instruction)
    return rows


def symbol_server_for(page_url: str, default: str) -> str:
    """The ``symbolServer`` query parameter of a loaded profile wins over the configured one."""
    values = parse_qs(urlparse(page_url).query).get("symbolServer")
    if values and values[0]:
        return values[0].rstrip("/")
    return default.rstrip("/")


def source_download_url(file_name: str) -> Optional[str]:
    """Public URL for a symbolicated file path, or None if only the symbol server can serve it."""
    if file_name.startswith(("http://", "https://")):
        return file_name

    parts = file_name.split(":")
    kind = parts[0]
    if kind == "hg" and len(parts) >= 4:
        # hg:hg.mozilla.org/mozilla-central:dom/base/Element.cpp:<rev>
        repo, path, rev = parts[1], parts[2], parts[3]
        return f"https://{repo}/raw-file/{rev}/{path}"
    if kind == "git" and len(parts) >= 4 and parts[1].startswith("github.com/"):
        repo, path, rev = parts[1][len("github.com/"):], parts[2], parts[3]
        return f"https://raw.githubusercontent.com/{repo}/{rev}/{path}"
    if kind == "s3" and len(parts) >= 3:
        bucket, key = parts[1], parts[2]
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return None


def _parse_address(value) -> int:
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


def _post_json(client: httpx.Client, url: str, body: dict) -> dict:
    try:
        resp = client.post(url, json=body)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as e:
        raise SymbolServerError(f"{url} returned {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise SymbolServerError(f"Request to {url} failed: {e}") from e


def _lib_request(lib: Optional[dict]) -> dict:
    if not lib or not lib.get("debugName") or not lib.get("debugId"):
        raise SymbolServerError("Function has no library information")
    return {
        "debugName": lib["debugName"],
        "debugId": lib["debugId"],
        "name": lib.get("name"),
        "codeId": lib.get("codeId"),
    }


def fetch_source(client: httpx.Client, server: str, details: dict) -> str:
    file_name = details["fileName"]
    url = source_download_url(file_name)
    if url is not None:
        log(f"Downloading source from {url}", level="DEBUG")
        try:
            resp = client.get(url, follow_redirects=True)
            resp.raise_for_status()
            return resp.text
        except httpx.HTTPStatusError as e:
            raise SymbolServerError(f"{url} returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SymbolServerError(f"Request to {url} failed: {e}") from e

    addresses = list(details.get("addressToLine", {})) + list(details.get("selfByAddress", {}))
    if details.get("symbolAddress") is not None:
        addresses.append(details["symbolAddress"])
    if not addresses:
        raise SymbolServerError(f"No address to look up source for {file_name}")

    body = _lib_request(details.get("lib"))
    body.update({"moduleOffset": hex(int(addresses[0])), "file": file_name})
    result = _post_json(client, f"{server}/source/v1", body)
    if "source" not in result:
        raise SymbolServerError(f"Symbol server has no source for {file_name}")
    return result["source"]


def disassembly_range(details: dict) -> Tuple[int, int]:
    """(start, size) to disassemble: the native symbol, or the span of sampled addresses."""
    sampled = [int(a) for a in details.get("selfByAddress", {})] + [int(a) for a in details.get("addressToLine", {})]
    start = details.get("symbolAddress")
    size = details.get("symbolSize")
    if start is not None and size:
        return int(start), int(size)
    if start is None:
        if not sampled:
            raise SymbolServerError("No address information for function")
        start = min(sampled)
    end = max(sampled + [int(start)]) + 1
    return int(start), max(end - int(start), MIN_ASM_SPAN)


def fetch_disassembly(client: httpx.Client, server: str, details: dict) -> Tuple[Optional[str], int, int, List[Tuple[int, str]]]:
    start, size = disassembly_range(details)
    body = _lib_request(details.get("lib"))
    body.update({"startAddress": hex(start), "size": hex(size)})
    result = _post_json(client, f"{server}/asm/v1", body)

    base = _parse_address(result.get("startAddress", start))
    instructions = [(base + _parse_address(offset), text) for offset, text in result.get("instructions", [])]
    if not instructions:
        raise SymbolServerError("Symbol server returned no instructions")
    return result.get("arch"), base, _parse_address(result.get("size", size)), instructions


def _int_keys(mapping: Optional[dict]) -> Dict[int, int]:
    return {int(k): v for k, v in (mapping or {}).items()}


def annotate_source(source: str, details: dict, context: int = DEFAULT_CONTEXT) -> List[SourceLine]:
    lines = source.splitlines()
    self_by_line = _int_keys(details.get("selfByLine"))
    sampled = set(self_by_line) | set(details.get("addressToLine", {}).values())
    if not sampled:
        raise SymbolServerError("No line information for function")
    try:
        start, end = guess_function_bounds(lines, sampled, context)
    except ValueError:
        raise SymbolServerError("Source file does not match the profile's line numbers") from None
    return [
        SourceLine(number=number, text=lines[number - 1], samples=self_by_line.get(number, 0))
        for number in range(start, end + 1)
    ]


def get_function_annotation(
    browser: Browser,
    url: str,
    function_name: str,
    settings: Optional[Settings] = None,
    include_source: bool = True,
    include_asm: bool = True,
    context: int = DEFAULT_CONTEXT,
) -> FunctionAnnotation:
    settings = settings or Settings()
    with open_profile(browser, url, settings) as page:
        details = evaluate(page, page_scripts.FUNCTION_DETAILS, {"functionName": function_name})
        page_url = page.url

    if not details.get("found"):
        raise FunctionNotFoundError(function_name)

    server = symbol_server_for(page_url, settings.symbol_server)
    lib = details.get("lib") or {}
    annotation = FunctionAnnotation(
        name=function_name,
        library=lib.get("debugName") or lib.get("name"),
        file=details.get("fileName"),
        self_samples=details.get("selfSamples", 0),
        total_samples=details.get("totalSamples", 0),
        arch=lib.get("arch"),
    )

    with httpx.Client(timeout=settings.http_timeout) as client:
        if include_source:
            if not annotation.file:
                log(f"No source file recorded for {function_name}", level="WARN")
            else:
                try:
                    annotation.source = annotate_source(fetch_source(client, server, details), details, context)
                except SymbolServerError as e:
                    log(f"Source unavailable: {e}", level="WARN")

        if include_asm:
            try:
                arch, start, size, raw = fetch_disassembly(client, server, details)
            except SymbolServerError as e:
                log(f"Disassembly unavailable: {e}", level="WARN")
            else:
                samples = _int_keys(details.get("selfByAddress"))
                annotation.arch = arch or annotation.arch
                annotation.start_address = start
                annotation.size = size
                annotation.instructions = [
                    Instruction(address=address, text=text, samples=samples.get(address, 0)) for address, text in raw
                ]
                assign_lines(annotation.instructions, _int_keys(details.get("addressToLine")))

    if not annotation.source and not annotation.instructions:
        raise SymbolServerError(f"Neither source nor disassembly is available for {function_name}")
    return annotation
