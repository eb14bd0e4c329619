"""Warranty date extraction from free-form receipt text.

Looks for a purchase date next to Hebrew or English purchase keywords, then
falls back to the first date near the top of the text, then to the only
date in the whole text. Expiry is read from expiry keywords or defaults to
purchase + 12 months. Auto-delete is always purchase + 7 years.
"""

import datetime
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

WARRANTY_MONTHS = 12
RETENTION_YEARS = 7

# Characters that count as part of a date token; anything else separates
_ALNUM = "0-9a-zA-Zא-ת"
_SEP = f"[^{_ALNUM}]"

_DATE_ALTERNATIVES = (
    rf"\d{{1,2}}{_SEP}\d{{1,2}}{_SEP}\d{{2,4}}"
    rf"|\d{{4}}{_SEP}\d{{1,2}}{_SEP}\d{{1,2}}"
    r"|\d{1,2}\s+[a-zא-ת]+\s+\d{2,4}"
)

ANY_DATE_RE = re.compile(f"({_DATE_ALTERNATIVES})", re.IGNORECASE)
HEAD_DATE_RE = re.compile(r"(\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4})")
HEAD_CHARS = 500

PURCHASE_KEYWORDS = [
    r"תאריך\s*ק.?נ.?י.?ה",
    r"תאריך\s*רכישה",
    r"תאריך\s*קניה",
    r"תאריך\s*קנייה",
    r"תאריך\s*הקניה",
    r"תאריך\s*הקנייה",
    r"תאריך\s*חשבונית",
    r"ת\.?\s*חשבונית",
    r"תאריך\s*תעודת\s*משלוח",
    r"תאריך\s*משלוח",
    r"תאריך\s*אספקה",
    r"תאריך\s*מסירה",
    r"נמסר\s*בתאריך",
    r"נרכש\s*בתאריך",
    r"purchase\s*date",
    r"date\s*of\s*purchase",
    r"invoice\s*date",
    r"buy\s*date",
]

EXPIRY_KEYWORDS = [
    r"תוקף\s*אחריות",
    r"תוקף\s*האחריות",
    r"האחריות\s*בתוקף\s*עד",
    r"בתוקף\s*עד",
    r"אחריות\s*עד",
    r"warranty\s*until",
    r"warranty\s*expiry",
    r"warranty\s*expires",
    r"valid\s*until",
    r"expiry\s*date",
    r"expiration\s*date",
]

MONTHS = {
    "jan": 1, "january": 1, "feb": 2, "february": 2, "mar": 3, "march": 3,
    "apr": 4, "april": 4, "may": 5, "jun": 6, "june": 6, "jul": 7, "july": 7,
    "aug": 8, "august": 8, "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10, "nov": 11, "november": 11, "dec": 12, "december": 12,
    "ינואר": 1, "פברואר": 2, "מרץ": 3, "מרס": 3, "אפריל": 4, "מאי": 5,
    "יוני": 6, "יולי": 7, "אוגוסט": 8, "ספטמבר": 9, "אוקטובר": 10,
    "נובמבר": 11, "דצמבר": 12,
}

_YMD_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMY_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_DMYY_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{2})$")


@dataclass
class WarrantyInfo:
    """Extracted warranty dates, each an ISO "YYYY-MM-DD" string or None."""
    warranty_start: Optional[str] = None
    warranty_expires_at: Optional[str] = None
    auto_delete_after: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.warranty_start or self.warranty_expires_at)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "warrantyStart": self.warranty_start,
            "warrantyExpiresAt": self.warranty_expires_at,
            "autoDeleteAfter": self.auto_delete_after,
        }


def _make_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return datetime.date(year, month, day).isoformat()
    except ValueError:
        return None


def _expand_year(text: str) -> int:
    if len(text) == 4:
        return int(text)
    yy = int(text)
    return 2000 + yy if yy < 50 else 1900 + yy


def add_years(iso_date: str, years: int) -> str:
    """Add whole years; 29 Feb rolls forward to 1 Mar in a common year."""
    start = datetime.date.fromisoformat(iso_date)
    try:
        return start.replace(year=start.year + years).isoformat()
    except ValueError:
        return datetime.date(start.year + years, 3, 1).isoformat()


def normalize_date_guess(text: Optional[str]) -> Optional[str]:
    """Turn one date-shaped fragment into "YYYY-MM-DD", or None."""
    if not text:
        return None
    s = text.strip().replace(",", " ")
    s = re.sub(f"[^{_ALNUM}]+", "-", s)
    s = re.sub(r"-+", "-", s).lower()
    tokens = s.split("-")

    if any(t in MONTHS for t in tokens):
        day = month = year = None
        for t in tokens:
            if t in MONTHS:
                month = MONTHS[t]
            elif re.fullmatch(r"\d{1,2}", t) and int(t) <= 31 and day is None:
                day = int(t)
            elif re.fullmatch(r"\d{2,4}", t) and year is None:
                year = _expand_year(t)
        if day is not None and month and year is not None:
            return _make_date(year, month, day)

    m = _YMD_RE.match(s)
    if m:
        ymd = _make_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if ymd:
            return ymd

    m = _DMY_RE.match(s)
    if m:
        ymd = _make_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if ymd:
            return ymd

    m = _DMYY_RE.match(s)
    if m:
        ymd = _make_date(_expand_year(m.group(3)), int(m.group(2)), int(m.group(1)))
        if ymd:
            return ymd

    return None


def find_date_after_keywords(keywords: Iterable[str], text: str) -> Optional[str]:
    """First valid date that directly follows one of the keywords."""
    for kw in keywords:
        pattern = re.compile(kw + r"[ \t:]*(" + _DATE_ALTERNATIVES + ")", re.IGNORECASE)
        m = pattern.search(text)
        if m and m.group(1):
            guess = normalize_date_guess(m.group(1))
            if guess:
                return guess
    return None


def _decode(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).decode("utf-8", errors="replace")
    return str(raw or "")


def extract_warranty(raw: Any) -> WarrantyInfo:
    """Extract purchase, expiry and auto-delete dates from receipt text.

    Accepts text or raw bytes (decoded as UTF-8). Never raises; missing
    dates come back as None.
    """
    raw_text = _decode(raw)
    raw_lower = raw_text.lower()
    lower = re.sub(r"\s+", " ", raw_text).strip().lower()

    start = find_date_after_keywords(PURCHASE_KEYWORDS, lower)
    expires = find_date_after_keywords(EXPIRY_KEYWORDS, lower)

    if not start:
        for line in re.split(r"\r?\n", raw_lower[:HEAD_CHARS]):
            m = HEAD_DATE_RE.search(line)
            if m:
                guess = normalize_date_guess(m.group(1))
                if guess:
                    start = guess
                    break

    if not start:
        candidates = set()
        for m in ANY_DATE_RE.finditer(raw_lower):
            guess = normalize_date_guess(m.group(1))
            if guess:
                candidates.add(guess)
        if len(candidates) == 1:
            start = candidates.pop()

    if not expires and start:
        expires = add_years(start, WARRANTY_MONTHS // 12)

    auto_delete = add_years(start, RETENTION_YEARS) if start else None
    return WarrantyInfo(start, expires, auto_delete)


def normalize_manual_date(text: Optional[str]) -> Optional[str]:
    """Normalize a hand-typed date (YYYY-M-D, D/M/YYYY or D.M.YYYY)."""
    if not text or not text.strip():
        return None
    parts = re.sub(r"[./]", "-", text.strip()).split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    a, b, c = parts
    if len(a) == 4:
        return _make_date(int(a), int(b), int(c))
    if len(c) == 4:
        return _make_date(int(c), int(b), int(a))
    return None


def manual_warranty(start_text: Optional[str],
                    expires_text: Optional[str]) -> WarrantyInfo:
    """Warranty dates typed in by the user when extraction found nothing."""
    start = normalize_manual_date(start_text)
    expires = normalize_manual_date(expires_text)
    auto_delete = add_years(start, RETENTION_YEARS) if start else None
    return WarrantyInfo(start, expires, auto_delete)
