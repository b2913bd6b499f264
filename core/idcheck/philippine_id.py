"""
Heuristic checks over text extracted from a Philippine government ID.

Nothing here is authoritative: the result decides between auto-verifying an
employer and sending the document to an admin for manual review.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from rapidfuzz.distance import Levenshtein

PHILIPPINE_ID_TYPES = [
    "PhilID/National ID",
    "Driver's License",
    "Passport",
    "UMID",
    "SSS ID",
    "PRC ID",
    "Postal ID",
    "Voter's ID",
    "TIN ID",
    "PhilHealth ID",
    "Company ID",
    "Other Government ID",
]
FALLBACK_ID_TYPE = "Other Government ID"

# Checked in order once the text mentions the republic; first hit wins.
_TYPE_KEYWORDS = [
    ("Driver's License", (("driver", "license"),)),
    ("PhilHealth ID", (("philhealth",),)),
    ("SSS ID", (("sss",), ("social security",))),
    ("Passport", (("passport",),)),
    ("UMID", (("unified multi-purpose",), ("umid",))),
    ("Postal ID", (("postal",),)),
    ("PhilID/National ID", (("philid",), ("national id",), ("philippine identification",))),
    ("Voter's ID", (("voter",), ("comelec",))),
    ("TIN ID", (("tin",), ("taxpayer",))),
    ("PRC ID", (("prc",), ("professional regulation",))),
]

ID_NUMBER_PATTERNS = [
    re.compile(r"\b(\d{4}-\d{4}-\d{4}|\d{12})\b"),  # PhilID
    re.compile(r"\b([A-Z]\d{2}-\d{2}-\d{6})\b"),  # driver's license
    re.compile(r"\b([A-Z]\d{8}|P[A-Z0-9]{8,9})\b"),  # passport
    re.compile(r"\b(\d{2}-\d{7}-\d)\b"),  # SSS
    re.compile(r"\b(\d{3}-\d{3}-\d{3}-\d{3}|\d{12})\b"),  # TIN
    re.compile(r"\b(CRN-\d{4}-\d{4}-\d{4}|\d{12})\b", re.IGNORECASE),  # UMID
    re.compile(r"\b(\d{7})\b"),  # PRC
    re.compile(r"\b(\d{4,})\b"),
]

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
    "|Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
)
DATE_PATTERNS = [
    re.compile(r"\b(0?[1-9]|1[0-2])[/\-](0?[1-9]|[12][0-9]|3[01])[/\-](19|20)\d{2}\b"),
    re.compile(rf"\b({_MONTHS})\.?\s+(0?[1-9]|[12][0-9]|3[01])(st|nd|rd|th)?,?\s+(19|20)\d{{2}}\b", re.IGNORECASE),
    re.compile(r"\b(0?[1-9]|[12][0-9]|3[01])[/\-](0?[1-9]|1[0-2])[/\-](19|20)\d{2}\b"),
]

ISSUED_INDICATORS = ("issued", "issuance", "date of issue", "issue date")
EXPIRY_INDICATORS = ("expiry", "expiration", "valid until", "valid thru", "date of expiry")
SINGLE_DATE_EXPIRY_INDICATORS = ("expiry", "expiration", "valid until")
CONTEXT_CHARS = 50
NAME_SIMILARITY_THRESHOLD = 0.8


@dataclass
class IDValidationResult:
    is_valid: bool
    name_match: bool
    id_type: Optional[str]
    id_number: Optional[str]
    date_issued: Optional[str]
    date_expiry: Optional[str]
    validation_errors: List[str] = field(default_factory=list)
    debug: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "is_valid": self.is_valid,
            "name_match": self.name_match,
            "id_type": self.id_type,
            "id_number": self.id_number,
            "date_issued": self.date_issued,
            "date_expiry": self.date_expiry,
            "validation_errors": list(self.validation_errors),
        }


def detect_id_type(text: str) -> str:
    lowered = text.lower()
    for id_type in PHILIPPINE_ID_TYPES:
        if id_type.lower() in lowered:
            return id_type
    if "republic of the philippines" not in lowered:
        return FALLBACK_ID_TYPE
    for id_type, alternatives in _TYPE_KEYWORDS:
        if any(all(word in lowered for word in words) for words in alternatives):
            return id_type
    return FALLBACK_ID_TYPE


def detect_id_type_from_filename(filename: str) -> Optional[str]:
    lowered = (filename or "").lower()
    for id_type in PHILIPPINE_ID_TYPES:
        if id_type.lower() in lowered:
            return id_type
    return None


def find_id_number(text: str, debug: Dict | None = None) -> Optional[str]:
    for pattern in ID_NUMBER_PATTERNS:
        matches = [m.group(0) for m in pattern.finditer(text)]
        if debug is not None:
            debug.setdefault("patterns", []).append({"pattern": pattern.pattern, "matches": matches})
        if matches:
            return matches[0]
    return None


def find_dates(text: str) -> List[str]:
    """Date strings in pattern order, duplicates dropped (first occurrence kept)."""
    dates: List[str] = []
    for pattern in DATE_PATTERNS:
        for match in pattern.finditer(text):
            value = match.group(0)
            if value not in dates:
                dates.append(value)
    return dates


def parse_date(value: str) -> Optional[date]:
    """Best-effort parse of a matched date string (month-first for numeric dates)."""
    cleaned = re.sub(r"(\d)(st|nd|rd|th)", r"\1", value.strip(), flags=re.IGNORECASE)
    cleaned = cleaned.replace(".", "").replace(",", "")
    cleaned = re.sub(r"\s+", " ", cleaned)
    for fmt in ("%m/%d/%Y", "%m-%d-%Y", "%d/%m/%Y", "%d-%m-%Y", "%B %d %Y", "%b %d %Y"):
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def _context(text: str, needle: str) -> str:
    index = text.find(needle)
    return text[max(0, index - CONTEXT_CHARS): index + CONTEXT_CHARS].lower()


def classify_dates(text: str, dates: List[str]) -> tuple[Optional[str], Optional[str]]:
    """(issued, expiry) from keyword context, falling back to chronological order."""
    if not dates:
        return None, None

    if len(dates) == 1:
        context = _context(text, dates[0])
        if any(word in context for word in SINGLE_DATE_EXPIRY_INDICATORS):
            return None, dates[0]
        return dates[0], None

    issued: Optional[str] = None
    expiry: Optional[str] = None
    for value in dates:
        context = _context(text, value)
        if not issued and any(word in context for word in ISSUED_INDICATORS):
            issued = value
        elif not expiry and any(word in context for word in EXPIRY_INDICATORS):
            expiry = value

    if issued or expiry:
        return issued, expiry

    parsed = [(parse_date(value), value) for value in dates]
    parsed = [(d, value) for d, value in parsed if d is not None]
    if not parsed:
        return dates[0], dates[-1]
    parsed.sort(key=lambda pair: pair[0])
    return parsed[0][1], parsed[-1][1]


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - edit_distance / max_len, case-insensitive; two empty strings are identical."""
    return Levenshtein.normalized_similarity(a.lower(), b.lower())


def name_matches(text: str, full_name: str) -> bool:
    """
    True when at least half (rounded up) of the name's parts longer than two
    characters appear in the text, exactly or as a close OCR misread.
    """
    parts = [p for p in full_name.lower().split() if len(p) > 2]
    if not parts:
        return False
    lowered = text.lower()
    tokens = re.findall(r"[a-z]+", lowered)

    found = 0
    for part in parts:
        if part in lowered or any(levenshtein_similarity(part, t) >= NAME_SIMILARITY_THRESHOLD for t in tokens):
            found += 1
    return found >= math.ceil(len(parts) / 2)


def validate_philippine_id(text: str, full_name: str | None = None) -> IDValidationResult:
    text = text or ""
    errors: List[str] = []
    is_valid = True
    debug: Dict = {"extracted_text": text}

    id_type = detect_id_type(text)
    id_number = find_id_number(text, debug)
    dates = find_dates(text)
    debug["dates"] = dates
    date_issued, date_expiry = classify_dates(text, dates)

    if not id_type:
        errors.append("Could not determine ID type")
        is_valid = False
    if not id_number:
        errors.append("Could not extract ID number")
        is_valid = False
    if not date_issued and not date_expiry:
        errors.append("Could not extract any dates from ID")

    name_match = False
    if full_name and full_name.strip():
        name_match = name_matches(text, full_name)
        if not name_match:
            errors.append("Name on ID may not match employer profile")

    return IDValidationResult(
        is_valid=is_valid,
        name_match=name_match,
        id_type=id_type,
        id_number=id_number,
        date_issued=date_issued,
        date_expiry=date_expiry,
        validation_errors=errors,
        debug=debug,
    )


__all__ = [
    "PHILIPPINE_ID_TYPES",
    "IDValidationResult",
    "detect_id_type",
    "detect_id_type_from_filename",
    "find_id_number",
    "find_dates",
    "parse_date",
    "classify_dates",
    "levenshtein_similarity",
    "name_matches",
    "validate_philippine_id",
]
