"""
Derive normalized entities from one raw admission row.

Every free-text heuristic is an ordered rule table evaluated top to bottom:
the first rule whose needle occurs in the text wins, otherwise the table's
default applies. Matching is case-sensitive substring matching, the same
way the exporter's own labels are written.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Sequence

from cutoff_intake.models import AdmissionRecord, Category, Institute, Program, Round

DEFAULT_YEAR = "2025"
DEFAULT_ROUND = "1"
DEFAULT_QUOTA = "AI"
DEFAULT_CATEGORY = "OPEN"
DEFAULT_GENDER = "Gender-Neutral"
ROUND_STATUS = "Completed"


@dataclass(frozen=True)
class Rule:
    needles: tuple[str, ...]
    result: str

    def matches(self, text: str) -> bool:
        return any(needle in text for needle in self.needles)


def first_match(rules: Sequence[Rule], text: str, default: str) -> str:
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return default


# IIIT and IIEST come first: "IIIT" contains "IIT" as a substring.
INSTITUTE_TYPE_RULES = (
    Rule(("IIIT", "Indian Institute of Information Technology"), "IIIT"),
    Rule(("IIEST", "Indian Institute of Engineering Science and Technology"), "IIEST"),
    Rule(("IIT", "Indian Institute of Technology"), "IIT"),
    Rule(("NIT", "National Institute of Technology"), "NIT"),
)
DEFAULT_INSTITUTE_TYPE = "GFTI"

# only these types get a name-derived code
CODE_TOKENS = {
    rule.result: rule.needles for rule in INSTITUTE_TYPE_RULES if rule.result in {"IIT", "NIT", "IIIT"}
}
DEFAULT_INSTITUTE_CODE = "INST001"

LOCATION_RULES = (
    Rule(("Bombay",), "Mumbai, Maharashtra"),
    Rule(("Delhi",), "New Delhi, Delhi"),
    Rule(("Madras",), "Chennai, Tamil Nadu"),
    Rule(("Kanpur",), "Kanpur, Uttar Pradesh"),
    Rule(("Kharagpur",), "Kharagpur, West Bengal"),
    Rule(("Roorkee",), "Roorkee, Uttarakhand"),
    Rule(("Guwahati",), "Guwahati, Assam"),
    Rule(("Hyderabad",), "Hyderabad, Telangana"),
    Rule(("Bhubaneswar",), "Bhubaneswar, Odisha"),
    Rule(("Indore",), "Indore, Madhya Pradesh"),
)
DEFAULT_LOCATION = "India"

DURATION_RULES = (
    Rule(("4 Years",), "4 Years"),
    Rule(("5 Years",), "5 Years"),
    Rule(("3 Years",), "3 Years"),
    Rule(("2 Years",), "2 Years"),
)
DEFAULT_DURATION = "4 Years"

DEGREE_RULES = (
    Rule(("Bachelor of Technology",), "B.Tech"),
    Rule(("Bachelor of Science",), "B.Sc"),
    Rule(("Bachelor of Architecture",), "B.Arch"),
    Rule(("Master of Technology",), "M.Tech"),
    Rule(("Master of Science",), "M.Sc"),
)
DEFAULT_DEGREE = "B.Tech"

CATEGORY_DESCRIPTIONS = {
    "OPEN": "General Category",
    "EWS": "Economically Weaker Section",
    "OBC-NCL": "Other Backward Classes - Non Creamy Layer",
    "SC": "Scheduled Caste",
    "ST": "Scheduled Tribe",
    "OPEN (PwD)": "General Category - Persons with Disability",
    "EWS (PwD)": "EWS - Persons with Disability",
    "OBC-NCL (PwD)": "OBC-NCL - Persons with Disability",
    "SC (PwD)": "SC - Persons with Disability",
    "ST (PwD)": "ST - Persons with Disability",
}

_ROUND_PREFIX_RE = re.compile(r"^round[\s_-]*(\S.*)$", re.IGNORECASE)
_LEADING_DIGITS_RE = re.compile(r"\d+")
PWD_RANK_SUFFIX = "P"


def institute_type_of(name: str) -> str:
    return first_match(INSTITUTE_TYPE_RULES, name, DEFAULT_INSTITUTE_TYPE)


def institute_code_of(name: str, institute_type: str | None = None) -> str:
    institute_type = institute_type or institute_type_of(name)
    tokens = CODE_TOKENS.get(institute_type)
    if not tokens:
        return DEFAULT_INSTITUTE_CODE
    for token in tokens:
        match = re.search(rf"{re.escape(token)}\s+(\w+)", name, re.IGNORECASE | re.ASCII)
        if match:
            return f"{institute_type}{match.group(1)[:3].upper()}"
    return f"{institute_type}001"


def location_of(name: str) -> str:
    return first_match(LOCATION_RULES, name, DEFAULT_LOCATION)


def duration_of(course: str) -> str:
    return first_match(DURATION_RULES, course, DEFAULT_DURATION)


def degree_of(course: str) -> str:
    return first_match(DEGREE_RULES, course, DEFAULT_DEGREE)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def program_code_of(course: str) -> str:
    """
    Stable 4-character program code.

    ``hash = hash * 31 + unit`` over the UTF-16 code units of the course text,
    wrapped to a signed 32-bit integer after every step; the code is the first
    four digits of its absolute value. Short values are not padded.
    """
    value = 0
    encoded = course.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = _to_int32((value << 5) - value + unit)
    return str(abs(value))[:4]


def category_description_of(category: str) -> str:
    return CATEGORY_DESCRIPTIONS.get(category, category)


def round_number_of(raw: str | None) -> str:
    text = (raw or "").strip()
    if not text:
        return DEFAULT_ROUND
    match = _ROUND_PREFIX_RE.match(text)
    return match.group(1).strip() if match else text


def parse_rank(raw: str | None) -> int:
    """
    Parse an opening/closing rank. A trailing ``P`` marks a PwD sub-quota
    rank and is dropped, so "50P" and "50" parse to the same value.
    Thousands separators are ignored; anything non-numeric is 0.
    """
    text = (raw or "").strip().replace(",", "")
    if text.endswith(PWD_RANK_SUFFIX):
        text = text[: -len(PWD_RANK_SUFFIX)].rstrip()
    match = _LEADING_DIGITS_RE.match(text)
    return int(match.group()) if match else 0


@dataclass(frozen=True)
class Inference:
    record: AdmissionRecord
    institute: Institute
    program: Program
    category: Category
    round: Round


def _field(row: Mapping[str, str], name: str, default: str = "") -> str:
    value = (row.get(name) or "").strip()
    return value or default


def infer_entities(row: Mapping[str, str]) -> Inference:
    """Pure: one raw row in, an unranked record plus its four dimension entities out."""
    institute_name = _field(row, "College")
    course = _field(row, "Couse")
    year = _field(row, "Year", DEFAULT_YEAR)
    category = _field(row, "Seat Type", DEFAULT_CATEGORY)
    number = round_number_of(row.get("Round"))

    institute_type = institute_type_of(institute_name)
    institute_code = institute_code_of(institute_name, institute_type)
    location = location_of(institute_name)
    duration = duration_of(course)

    record = AdmissionRecord(
        year=year,
        round=f"Round-{number}",
        institute_name=institute_name,
        institute_code=institute_code,
        location=location,
        institute_type=institute_type,
        branch=course,
        duration=duration,
        category=category,
        gender=_field(row, "Gender", DEFAULT_GENDER),
        opening_rank=parse_rank(row.get("Opening Rank")),
        closing_rank=parse_rank(row.get("Closing Rank")),
        quota=_field(row, "Quota", DEFAULT_QUOTA),
    )
    return Inference(
        record=record,
        institute=Institute(
            code=institute_code,
            label=institute_name,
            type=institute_type,
            location=location,
        ),
        program=Program(
            code=program_code_of(course),
            label=course,
            duration=duration,
            degree=degree_of(course),
        ),
        category=Category(
            value=category,
            label=category,
            description=category_description_of(category),
        ),
        round=Round(
            value=f"Round-{number}",
            label=f"Round {number}",
            year=year,
            status=ROUND_STATUS,
        ),
    )
