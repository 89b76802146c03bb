"""
Data models for TOPDON diagnostic reports and their analysis.

Wire names (``cod``, ``descriere``, ``pas_1_erori_initiale`` ...) are the
Romanian keys the reasoning service and the report template use.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple
import json


UNSPECIFIED_STATUS = "Unspecified"


@dataclass(frozen=True)
class DtcRecord:
    """A single fault code as found in the vendor report."""
    module: str           # ECU / subsystem name, free text
    code: str             # vendor hex code or OBD-II code (P0301)
    raw_description: str  # whitespace-collapsed, not normalized otherwise
    status: str = UNSPECIFIED_STATUS  # Memory, Permanent, Intermittent ...

    def to_dict(self) -> dict:
        return {
            "cod": self.code,
            "modul": self.module,
            "descriere_bruta": self.raw_description,
        }


@dataclass(frozen=True)
class DiagnosticReport:
    """Everything extracted from one vendor report page."""
    url: str = ""
    vin: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Optional[str] = None
    time: Optional[str] = None
    serial_number: Optional[str] = None
    dtcs: Tuple[DtcRecord, ...] = ()

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "vin": self.vin,
            "make": self.make,
            "model": self.model,
            "mileage": self.mileage,
            "time": self.time,
            "sn": self.serial_number,
            "dtcs": [
                {**d.to_dict(), "status": d.status} for d in self.dtcs
            ],
        }


def _text(value: Any) -> str:
    """Coerce a loosely typed JSON value to a stripped string."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


@dataclass(frozen=True)
class VehicleInfo:
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[str] = None
    engine: Optional[str] = None
    mileage: Optional[str] = None
    scan_date: str = ""  # YYYY-MM-DD

    def to_dict(self) -> dict:
        return {
            "brand": self.brand,
            "model": self.model,
            "an": self.year,
            "motorizare": self.engine,
            "kilometraj": self.mileage,
            "data_scanarii": self.scan_date,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "VehicleInfo":
        if not isinstance(data, dict):
            data = {}
        return cls(
            brand=_optional_text(data.get("brand")),
            model=_optional_text(data.get("model")),
            year=_optional_text(data.get("an")),
            engine=_optional_text(data.get("motorizare")),
            mileage=_optional_text(data.get("kilometraj")),
            scan_date=_text(data.get("data_scanarii")),
        )


@dataclass(frozen=True)
class InitialError:
    """One explained fault code (a row of the 'pas 1' table)."""
    code: str
    description: str = ""
    possible_cause: str = ""
    recommendation: str = ""

    def to_dict(self) -> dict:
        return {
            "cod": self.code,
            "descriere": self.description,
            "cauza_posibila": self.possible_cause,
            "recomandare": self.recommendation,
        }


@dataclass(frozen=True)
class TodoItem:
    nr: str
    text: str

    def to_dict(self) -> dict:
        return {"nr": self.nr, "text": self.text}


@dataclass(frozen=True)
class AnalysisResult:
    """Strict-shape analysis rendered into the report template."""
    vehicle: VehicleInfo = field(default_factory=VehicleInfo)
    initial_errors: Tuple[InitialError, ...] = ()
    conclusion: str = ""
    todo: Tuple[TodoItem, ...] = ()

    def to_dict(self) -> dict:
        return {
            "vehicul": self.vehicle.to_dict(),
            "pas_1_erori_initiale": [e.to_dict() for e in self.initial_errors],
            "concluzie": self.conclusion,
            "todo": [t.to_dict() for t in self.todo],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        """Build from the service payload, dropping entries of the wrong type."""
        errors = []
        raw_errors = data.get("pas_1_erori_initiale")
        for entry in raw_errors if isinstance(raw_errors, list) else []:
            if not isinstance(entry, dict):
                continue
            errors.append(InitialError(
                code=_text(entry.get("cod")),
                description=_text(entry.get("descriere")),
                possible_cause=_text(entry.get("cauza_posibila")),
                recommendation=_text(entry.get("recomandare")),
            ))

        todo = []
        raw_todo = data.get("todo")
        for i, entry in enumerate(raw_todo if isinstance(raw_todo, list) else [], 1):
            if isinstance(entry, dict):
                text = _text(entry.get("text"))
                nr = _text(entry.get("nr")) or str(i)
            else:
                text = _text(entry)
                nr = str(i)
            if text:
                todo.append(TodoItem(nr=nr, text=text))

        return cls(
            vehicle=VehicleInfo.from_dict(data.get("vehicul")),
            initial_errors=tuple(errors),
            conclusion=_text(data.get("concluzie")),
            todo=tuple(todo),
        )


class Provenance(Enum):
    """How an analysis result was obtained."""
    PARSED = "parsed"      # service reply was valid JSON as-is
    REPAIRED = "repaired"  # valid after fence/quote/brace repair
    FALLBACK = "fallback"  # synthesized from the raw DTCs


@dataclass(frozen=True)
class AnalysisOutcome:
    result: AnalysisResult
    provenance: Provenance
    attempts: int = 0  # service calls made


@dataclass(frozen=True)
class RenderedReport:
    """Finished artifact for one report."""
    html: str        # written to disk
    email_html: str  # CSS inlined, scripts removed
    file_name: str
    report: DiagnosticReport
    analysis: AnalysisResult
