"""
Normalized entities produced by an ingestion run.

Stored field names are snake_case, matching the columns of the managed
backend. ``from_dict`` also accepts the camelCase keys written by the older
browser uploader, so exported snapshots load without conversion.

The optional ``id`` is the storage collaborator's identifier. It is carried
through untouched and never takes part in identity or set-uniqueness.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, ClassVar, Iterable, Mapping

INSTITUTE_TYPES = ("IIT", "NIT", "IIIT", "IIEST", "GFTI")
DEGREES = ("B.Tech", "B.Sc", "B.Arch", "M.Tech", "M.Sc")

COLLECTIONS = ("records", "institutes", "programs", "categories", "rounds")

RECORD_KEY_ALIASES = {
    "instituteName": "institute_name",
    "instituteCode": "institute_code",
    "instituteType": "institute_type",
    "openingRank": "opening_rank",
    "closingRank": "closing_rank",
}


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _rename(data: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    renamed: dict[str, Any] = {}
    for key, value in data.items():
        target = aliases.get(key, key)
        # a canonical key wins over its legacy alias
        if target in renamed and key != target:
            continue
        renamed[target] = value
    return renamed


class _Entity:
    KEY_ALIASES: ClassVar[dict[str, str]] = {}

    def identity(self) -> tuple:
        return tuple(getattr(self, f.name) for f in fields(self) if f.name != "id")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data.get("id") is None:
            data.pop("id", None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        values = _rename(data, cls.KEY_ALIASES)
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in values:
                continue
            kwargs[f.name] = values[f.name] if f.name == "id" else _as_text(values[f.name])
        return cls(**kwargs)


@dataclass
class Institute(_Entity):
    KEY_ALIASES: ClassVar[dict[str, str]] = {"value": "code"}

    code: str
    label: str
    type: str = "GFTI"
    location: str = "India"
    id: Any = None


@dataclass
class Program(_Entity):
    KEY_ALIASES: ClassVar[dict[str, str]] = {"value": "code"}

    code: str
    label: str
    duration: str = "4 Years"
    degree: str = "B.Tech"
    id: Any = None


@dataclass
class Category(_Entity):
    value: str
    label: str
    description: str = ""
    id: Any = None


@dataclass
class Round(_Entity):
    value: str
    label: str
    year: str = ""
    status: str = "Completed"
    id: Any = None


@dataclass
class AdmissionRecord:
    year: str
    round: str
    institute_name: str
    institute_code: str
    location: str
    institute_type: str
    branch: str
    duration: str
    category: str
    gender: str
    opening_rank: int
    closing_rank: int
    quota: str
    rank: int | None = None
    id: Any = None

    def identity_key(self) -> tuple:
        return (
            self.institute_name,
            self.branch,
            self.category,
            self.gender,
            self.round,
            self.opening_rank,
            self.closing_rank,
        )

    def with_rank(self, rank: int) -> "AdmissionRecord":
        return replace(self, rank=rank)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data.get("id") is None:
            data.pop("id", None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdmissionRecord":
        values = _rename(data, RECORD_KEY_ALIASES)
        rank = values.get("rank")
        return cls(
            year=_as_text(values.get("year")),
            round=_as_text(values.get("round")),
            institute_name=_as_text(values.get("institute_name")),
            institute_code=_as_text(values.get("institute_code")),
            location=_as_text(values.get("location")),
            institute_type=_as_text(values.get("institute_type")),
            branch=_as_text(values.get("branch")),
            duration=_as_text(values.get("duration")),
            category=_as_text(values.get("category")),
            gender=_as_text(values.get("gender")),
            opening_rank=_as_int(values.get("opening_rank")),
            closing_rank=_as_int(values.get("closing_rank")),
            quota=_as_text(values.get("quota")),
            rank=None if rank in (None, "") else _as_int(rank),
            id=values.get("id"),
        )


ENTITY_TYPES: dict[str, type] = {
    "records": AdmissionRecord,
    "institutes": Institute,
    "programs": Program,
    "categories": Category,
    "rounds": Round,
}


@dataclass
class Snapshot:
    records: list[AdmissionRecord] = field(default_factory=list)
    institutes: list[Institute] = field(default_factory=list)
    programs: list[Program] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    rounds: list[Round] = field(default_factory=list)

    def max_rank(self) -> int:
        return max((record.rank or 0 for record in self.records), default=0)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in COLLECTIONS}

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {name: [item.to_dict() for item in getattr(self, name)] for name in COLLECTIONS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Snapshot":
        data = data or {}
        collections: dict[str, list] = {}
        for name in COLLECTIONS:
            items: Iterable[Mapping[str, Any]] = data.get(name) or []
            if name == "records" and not items:
                # older exports call the record collection "colleges"
                items = data.get("colleges") or []
            collections[name] = [ENTITY_TYPES[name].from_dict(item) for item in items]
        return cls(**collections)
