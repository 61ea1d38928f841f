"""Shapes of the data pulled out of a loaded profile."""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Dict, List, Optional, Tuple


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_json(value):
    if is_dataclass(value):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    return value


class _Serializable:
    def to_dict(self) -> dict:
        """camelCase JSON form, as printed by --json."""
        return {_camel(f.name): to_json(getattr(self, f.name)) for f in fields(self)}


@dataclass
class CallPath(_Serializable):
    stack: List[str]
    samples: int


@dataclass
class CallTreeNode(_Serializable):
    name: str
    self_time: int
    total_time: int
    stack: List[str]
    call_paths: Optional[List[CallPath]] = None


@dataclass
class FlameNode(_Serializable):
    name: str
    self_time: int
    total_time: int
    children: List["FlameNode"] = field(default_factory=list)


@dataclass
class MarkerSummary(_Serializable):
    name: str
    count: int
    total_duration: float
    avg_duration: float
    min_duration: float
    max_duration: float


@dataclass
class Resource(_Serializable):
    url: str
    duration: float
    type: str


@dataclass
class ResourceStats(_Serializable):
    total_resources: int
    by_type: Dict[str, int]
    avg_duration: float
    max_duration: float
    top_resources: List[Resource]


@dataclass
class SampleCategoryStats(_Serializable):
    total_samples: int
    by_category: Dict[str, int]


@dataclass
class JankPeriod(_Serializable):
    start_time: float
    duration: float
    top_functions: List[Tuple[str, int]]
    categories: Dict[str, int]

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["topFunctions"] = [{"name": n, "samples": s} for n, s in self.top_functions]
        return d


@dataclass
class PageLoadSummary(_Serializable):
    url: Optional[str]
    navigation_start: Optional[float]
    load: Optional[float]
    first_contentful_paint: Optional[float]
    largest_contentful_paint: Optional[float]
    resources: Optional[ResourceStats]
    sample_categories: Optional[SampleCategoryStats]
    jank_periods: Optional[List[JankPeriod]]


@dataclass
class NetworkPhase(_Serializable):
    label: str
    duration: float


@dataclass
class NetworkResourceTiming(_Serializable):
    url: str
    start_time: float
    duration: float
    status: str
    content_type: Optional[str] = None
    size: Optional[int] = None
    http_version: Optional[str] = None
    cache: Optional[str] = None
    phases: List[NetworkPhase] = field(default_factory=list)


@dataclass
class NetworkResourceSummary(_Serializable):
    resources: List[NetworkResourceTiming]
    total_resources: int
    phase_totals: Dict[str, float]
    cache_stats: Dict[str, int]


@dataclass
class Instruction(_Serializable):
    address: int
    text: str
    samples: int = 0
    line: Optional[int] = None


@dataclass
class SourceLine(_Serializable):
    number: int
    text: str
    samples: int = 0


@dataclass
class FunctionAnnotation(_Serializable):
    name: str
    library: Optional[str]
    file: Optional[str]
    self_samples: int
    total_samples: int
    start_address: Optional[int] = None
    size: Optional[int] = None
    arch: Optional[str] = None
    source: List[SourceLine] = field(default_factory=list)
    instructions: List[Instruction] = field(default_factory=list)
