"""
Structured data extraction from TOPDON diagnostic report pages.

Vendor exports differ between firmware versions, so DTCs are pulled with an
ordered cascade of strategies. The first strategy that yields at least one
record wins and the rest are never run:

    1. structured lines   MODULE HEXCODE description STATUS
    2. generic OBD-II     P0301: description
    3. table rows         any <tr> with a code-looking cell

Worst case the report comes back with no DTCs; that is not an error.
"""
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .models import DiagnosticReport, DtcRecord, UNSPECIFIED_STATUS

logger = logging.getLogger(__name__)


# Observed in TOPDON exports (English and Romanian UI). Not exhaustive.
DEFAULT_STATUS_KEYWORDS: Tuple[str, ...] = (
    "History",
    "Current",
    "Permanent",
    "Intermittent",
    "Intermitent",
    "Memory",
    "Memorie",
    "Pending",
    "Fara status",
    "Fără status",
)

DEFAULT_TABLE_CODE_PATTERNS: Tuple[str, ...] = (
    r"[PBCU]\d{4}",
    # bare numbers longer than four digits are mileages or serials, not codes
    r"(?=[0-9A-F]*\d)(?:[0-9A-F]{4}|(?=[0-9A-F]*[A-F])[0-9A-F]{5,6})",
)

# Labels of the scalar fields; a generic DTC description stops at any of them.
FIELD_LABELS: Tuple[str, ...] = ("VIN", "Make", "Model", "Mileage", "Time", "SN")

# Vehicle info rows of the export tables. Never DTC rows, whatever the value looks like.
DEFAULT_INFO_LABELS: Tuple[str, ...] = FIELD_LABELS + (
    "Year", "An", "Marca", "Kilometraj", "Data", "Date", "Serial",
)

_UPPER = "A-ZĂÂÎȘŞȚŢ"
_HEX_CODE = r"(?=[0-9A-F]*\d)[0-9A-F]{3,6}(?![0-9A-Za-z])"

# Elements that start a new line of the rendered report
BLOCK_TAGS = (
    "p", "div", "br", "li", "ul", "ol", "tr", "table", "thead", "tbody",
    "h1", "h2", "h3", "h4", "h5", "h6", "section", "article", "header",
    "footer", "pre", "blockquote", "dt", "dd", "hr",
)
# source newlines inside a block are plain whitespace, so lines split on this instead
_BLOCK_BREAK = "\x1e"


@dataclass(frozen=True)
class ExtractionConfig:
    """Keyword and pattern sets the extraction passes are driven by."""
    status_keywords: Tuple[str, ...] = DEFAULT_STATUS_KEYWORDS
    table_code_patterns: Tuple[str, ...] = DEFAULT_TABLE_CODE_PATTERNS
    info_labels: Tuple[str, ...] = DEFAULT_INFO_LABELS
    obd_code_pattern: str = r"[PBCU]\d{4}"
    generic_module: str = "ECU"
    unspecified_status: str = UNSPECIFIED_STATUS
    capture_status: bool = True  # keep the terminal keyword as the record status
    # "current" inside a description is prose, "Current" at the end is a status
    status_ignore_case: bool = False


@dataclass
class ReportPage:
    """Parsed page handed to every extraction strategy."""
    text: str  # visible text, whitespace collapsed
    soup: BeautifulSoup = field(repr=False)
    lines: Tuple[str, ...] = ()  # one entry per block element, whitespace collapsed


Strategy = Callable[[ReportPage, ExtractionConfig], List[DtcRecord]]


# ============================================================================
# TEXT HELPERS
# ============================================================================

def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _normalize_description(text: str) -> str:
    text = collapse_whitespace(text)
    text = re.sub(r"\s*,\s*", ", ", text)
    return text.strip(" ,;:-")


def _keyword_pattern(keyword: str) -> str:
    """Regex for a configured keyword; inner spaces match any whitespace run."""
    return r"\s*".join(re.escape(part) for part in keyword.split())


def _keywords_alternation(keywords: Sequence[str]) -> str:
    ordered = sorted(keywords, key=len, reverse=True)
    return "|".join(_keyword_pattern(k) for k in ordered)


def _status_flags(config: ExtractionConfig) -> int:
    return re.IGNORECASE if config.status_ignore_case else 0


def _status_group(config: ExtractionConfig, keywords: Sequence[str]) -> str:
    alternation = _keywords_alternation(keywords)
    return f"(?i:{alternation})" if config.status_ignore_case else f"(?:{alternation})"


def _canonical_status(matched: str, config: ExtractionConfig) -> str:
    for keyword in config.status_keywords:
        if re.fullmatch(_keyword_pattern(keyword), matched.strip(), re.IGNORECASE):
            return keyword
    return collapse_whitespace(matched)


def parse_page(html: str) -> ReportPage:
    """Strip markup to visible text; keep the soup for the table pass.

    ``text`` is the whole page on one line for the label patterns. ``lines``
    keeps block boundaries so a heading never runs into the record below it.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    root = soup.body or soup
    text = unicodedata.normalize("NFC", root.get_text(" "))

    # separators go into a copy so the table pass still sees the original cells
    blocks = BeautifulSoup(str(root), "html.parser")
    for tag in blocks.find_all(list(BLOCK_TAGS)):
        tag.insert_before(_BLOCK_BREAK)
        tag.insert_after(_BLOCK_BREAK)
    block_text = unicodedata.normalize("NFC", blocks.get_text(" "))
    chunks = (collapse_whitespace(chunk) for chunk in block_text.split(_BLOCK_BREAK))
    lines = tuple(chunk for chunk in chunks if chunk)
    return ReportPage(text=collapse_whitespace(text), soup=soup, lines=lines)


# ============================================================================
# SCALAR FIELDS
# ============================================================================

_LABEL_WORDS = "|".join(FIELD_LABELS)

# A model name ends before the next label, a status keyword or a MODULE CODE pair
_MODEL_STOP = (
    rf"(?:{_LABEL_WORDS})\b"
    rf"|(?-i:(?:{_keywords_alternation(DEFAULT_STATUS_KEYWORDS)})(?!\w))"
    rf"|(?-i:[{_UPPER}]{{3,}}\s{_HEX_CODE})"
)

FIELD_PATTERNS = {
    "vin": re.compile(r"\bVIN\s*:\s*([A-HJ-NPR-Z0-9]{17})(?![A-Za-z0-9])", re.IGNORECASE),
    "make": re.compile(r"\bMake\s*:\s*([A-Za-z0-9][A-Za-z0-9\-]*)", re.IGNORECASE),
    "model": re.compile(
        r"\bModel\s*:\s*([A-Za-z0-9/\-]+(?:\s(?!" + _MODEL_STOP + r")[A-Za-z0-9/\-]+){0,3})",
        re.IGNORECASE,
    ),
    "mileage": re.compile(r"\bMileage\s*:\s*([0-9][0-9.,]*\s*(?:km|mi))\b", re.IGNORECASE),
    "time": re.compile(
        r"\bTime\s*:\s*(\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?)",
        re.IGNORECASE,
    ),
    "serial_number": re.compile(r"\bSN\s*:\s*([A-Z0-9]+)", re.IGNORECASE),
}


def extract_fields(text: str) -> dict:
    """Pick every labeled scalar independently; missing ones stay None."""
    fields = {}
    for name, pattern in FIELD_PATTERNS.items():
        match = pattern.search(text)
        fields[name] = collapse_whitespace(match.group(1)) if match else None
    if fields["vin"]:
        fields["vin"] = fields["vin"].upper()
    if fields["serial_number"]:
        fields["serial_number"] = fields["serial_number"].upper()
    return fields


# ============================================================================
# DTC STRATEGIES
# ============================================================================

def _structured_pattern(config: ExtractionConfig) -> re.Pattern:
    first_token = rf"[{_UPPER}][{_UPPER}0-9/&\-]{{2,}}"
    next_token = rf"[{_UPPER}][{_UPPER}0-9/&\-]+"
    module = rf"(?P<module>{first_token}(?:\s{next_token})*(?:\s?\([^()]*\))?)"
    # stop a description before it runs into the next MODULE CODE pair
    next_record = rf"\s[{_UPPER}]{{3,}}\s(?=[0-9A-F]*\d)[0-9A-F]{{3,6}}\s"
    status = _status_group(config, config.status_keywords)
    return re.compile(
        rf"(?<![\w(])"
        rf"{module}\s(?P<code>{_HEX_CODE})\s"
        rf"(?P<desc>(?:(?!{next_record}).)+?)\s?"
        rf"(?<!\w)(?P<status>{status})(?!\w)"
    )


def structured_line_pass(page: ReportPage, config: ExtractionConfig) -> List[DtcRecord]:
    """MODULE NAME, hex code, free text, terminated by a status keyword."""
    pattern = _structured_pattern(config)
    matches = (m for line in (page.lines or (page.text,)) for m in pattern.finditer(line))
    records = []
    for m in matches:
        status = config.unspecified_status
        if config.capture_status:
            status = _canonical_status(m.group("status"), config)
        records.append(DtcRecord(
            module=collapse_whitespace(m.group("module")),
            code=m.group("code"),
            raw_description=_normalize_description(m.group("desc")),
            status=status,
        ))
    return records


def _obd_pattern(config: ExtractionConfig) -> re.Pattern:
    code = rf"(?<![A-Za-z0-9])(?P<code>{config.obd_code_pattern})(?![A-Za-z0-9])"
    next_code = rf"(?<![A-Za-z0-9]){config.obd_code_pattern}(?![A-Za-z0-9])"
    stops = _status_group(config, ("Status", "status") + tuple(config.status_keywords))
    terminator = (
        rf"(?=\s*(?:(?<!\w){stops}(?!\w)"
        rf"|(?<!\w)(?i:{_LABEL_WORDS})\s*:"
        rf"|{next_code}"
        rf"|$))"
    )
    return re.compile(rf"{code}[:\-\s]*(?P<desc>.*?){terminator}")


def obd_code_pass(page: ReportPage, config: ExtractionConfig) -> List[DtcRecord]:
    """Standard P/B/C/U codes followed by whatever text precedes the next stop word."""
    return [
        DtcRecord(
            module=config.generic_module,
            code=m.group("code"),
            raw_description=_normalize_description(m.group("desc")),
            status=config.unspecified_status,
        )
        for m in _obd_pattern(config).finditer(page.text)
    ]


def table_row_pass(page: ReportPage, config: ExtractionConfig) -> List[DtcRecord]:
    """Any table row with a code-looking cell; other cells become the description."""
    code_patterns = [re.compile(p) for p in config.table_code_patterns]
    status_pattern = re.compile(
        rf"(?:{_keywords_alternation(config.status_keywords)})", _status_flags(config)
    )
    info_labels = {label.casefold() for label in config.info_labels}
    records = []
    for row in page.soup.find_all("tr"):
        cells = [collapse_whitespace(c.get_text(" ")) for c in row.find_all(["td", "th"])]
        if len(cells) < 2:
            continue
        if cells[0].rstrip(" :").casefold() in info_labels:
            continue

        code_index = next(
            (i for i, cell in enumerate(cells) if any(p.fullmatch(cell) for p in code_patterns)),
            None,
        )
        if code_index is None:
            continue

        module_index = 0 if code_index != 0 and cells[0] else None
        module = cells[0] if module_index is not None else config.generic_module

        status = config.unspecified_status
        description_parts = []
        for i, cell in enumerate(cells):
            if i in (code_index, module_index) or not cell:
                continue
            if status_pattern.fullmatch(cell):
                if config.capture_status:
                    status = _canonical_status(cell, config)
                continue
            description_parts.append(cell)

        records.append(DtcRecord(
            module=module,
            code=cells[code_index],
            raw_description=_normalize_description(" ".join(description_parts)),
            status=status,
        ))
    return records


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("structured", structured_line_pass),
    ("obd", obd_code_pass),
    ("table", table_row_pass),
)


# ============================================================================
# EXTRACTOR
# ============================================================================

class ReportExtractor:
    """Turns a fetched report page into a DiagnosticReport. Never raises."""

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
    ):
        self.config = config or ExtractionConfig()
        self.strategies = tuple(strategies)

    def extract(self, html: str, url: str = "") -> DiagnosticReport:
        try:
            page = parse_page(html)
        except Exception as e:
            logger.warning(f"Could not parse report page {url or '<inline>'}: {e}")
            return DiagnosticReport(url=url)

        fields = extract_fields(page.text)
        dtcs = self.extract_dtcs(page)

        return DiagnosticReport(url=url, dtcs=tuple(dtcs), **fields)

    def extract_dtcs(self, page: ReportPage) -> List[DtcRecord]:
        """Run the cascade; only the first strategy with results counts."""
        for name, strategy in self.strategies:
            try:
                records = strategy(page, self.config)
            except Exception as e:
                logger.warning(f"DTC strategy '{name}' failed: {e}")
                continue
            if records:
                logger.info(f"Extracted {len(records)} DTCs with the {name} pass")
                return records
            logger.debug(f"DTC strategy '{name}' found nothing")

        logger.info("No DTCs found in report")
        return []


def extract(html: str, url: str = "", config: Optional[ExtractionConfig] = None) -> DiagnosticReport:
    """Module-level shortcut for ReportExtractor(config).extract()."""
    return ReportExtractor(config).extract(html, url)
