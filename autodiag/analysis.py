"""
LLM analysis of an extracted diagnostic report.

The reasoning service is asked for one strict JSON object. Its output is not
trusted: the reply is repaired (code fences, smart quotes, surrounding prose)
before parsing, retried once when it still does not parse, and replaced by a
deterministic fallback built from the raw DTCs when the retry fails too.
Callers always get a complete AnalysisResult back.
"""
import json
import logging
import re
import unicodedata
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional, Tuple

from .models import (
    AnalysisOutcome,
    AnalysisResult,
    DiagnosticReport,
    InitialError,
    Provenance,
    TodoItem,
    VehicleInfo,
)

logger = logging.getLogger(__name__)

# (system_prompt, user_message) -> raw reply text
CompletionFn = Callable[[str, str], str]


# ============================================================================
# PROMPTS AND DEFAULT TEXT
# ============================================================================

SYSTEM_PROMPT = """Esti un mecanic auto senior. Raspunzi EXCLUSIV in JSON strict, fara diacritice.
Campuri obligatorii:
{
 "vehicul":{"brand":"...","model":"...","an":null|"....","motorizare":null|"....","kilometraj":"...","data_scanarii":"YYYY-MM-DD"},
 "pas_1_erori_initiale":[{"cod":"...","descriere":"...","cauza_posibila":"...","recomandare":"..."}],
 "concluzie":"...",
 "todo":[{"nr":"1","text":"..."}]
}
Reguli: un singur obiect JSON, fara text in afara lui; 2-4 propozitii per camp; nu inventa date lipsa (foloseste null); concis si practic; fara diacritice."""

USER_INSTRUCTION = (
    "Analizeaza raportul TOPDON: pentru fiecare DTC da Descriere, Cauza posibila, Recomandare. "
    "La final Concluzie si lista 'Ce trebuie facut acum'."
)

NO_DTC_CONCLUSION = (
    "Raportul TOPDON nu contine coduri DTC sau exportul a fost incomplet. "
    "Recomand rescanare completa cu tensiune stabila si salvarea datelor de freeze frame."
)

NO_DTC_TODO: Tuple[TodoItem, ...] = (
    TodoItem("1", "Efectueaza un Auto-Scan complet pe toate modulele cu redresor conectat (12-14.5V)."),
    TodoItem("2", "Daca apar coduri, exporta raportul detaliat cu denumirea ECU, codul, descrierea si freeze frame."),
    TodoItem("3", "Daca nu apar coduri, verifica alimentarea OBD-II si liniile CAN/K-Line."),
)

FALLBACK_CONCLUSION = (
    "Analiza automata nu a putut fi validata. Codurile de mai sus sunt preluate direct din raportul TOPDON "
    "si trebuie interpretate de un tehnician inainte de orice interventie."
)

FALLBACK_TODO: Tuple[TodoItem, ...] = (
    TodoItem("1", "Verifica fiecare cod DTC in documentatia producatorului si noteaza datele de freeze frame."),
    TodoItem("2", "Remediaza cauzele confirmate, apoi sterge codurile si efectueaza un test drive."),
    TodoItem("3", "Rescaneaza toate modulele si compara rezultatul cu raportul initial."),
)

DEFAULT_CONCLUSION = "Vezi erorile de mai sus si lista de actiuni recomandate."

GENERIC_CAUSE = "Cauza nu a putut fi determinata automat; necesita verificare cu tester si schema electrica."
GENERIC_RECOMMENDATION = "Verifica conexiunile si componentele modulului indicat, apoi rescaneaza."


# ============================================================================
# JSON REPAIR
# ============================================================================

class AnalysisParseError(ValueError):
    """The service reply could not be turned into a JSON object."""


_SMART_QUOTES = {
    "“": '"', "”": '"', "„": '"', "‟": '"', "«": '"', "»": '"',
    "‘": "'", "’": "'", "‚": "'", "‛": "'",
}

_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)


def _outermost_object(text: str) -> Optional[str]:
    """First balanced {...} span, ignoring braces inside strings."""
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    end = text.rfind("}")
    return text[start:end + 1] if end > start else None


def repair_json_text(raw: str, normalize_quotes: bool = True) -> str:
    """Best-effort cleanup of a reply that should have been bare JSON.

    Typographic quotes are only rewritten when ``normalize_quotes`` is set;
    inside a valid string value they are content, not delimiters.
    """
    text = (raw or "").strip()

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    else:
        text = re.sub(r"^```[a-zA-Z]*\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    if normalize_quotes:
        for smart, plain in _SMART_QUOTES.items():
            text = text.replace(smart, plain)

    obj = _outermost_object(text)
    if obj is not None:
        text = obj

    # trailing commas
    return re.sub(r",\s*([}\]])", r"\1", text)


def parse_analysis_payload(raw: str) -> Tuple[dict, bool]:
    """Parse a reply into a dict. Returns (payload, repaired).

    Structural repairs are tried before quote normalization, so a reply is
    only rewritten as far as it needs to be.
    """
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            return data, False
    except (TypeError, ValueError):
        pass

    error = None
    for normalize_quotes in (False, True):
        candidate = repair_json_text(raw, normalize_quotes=normalize_quotes)
        try:
            data = json.loads(candidate)
        except ValueError as e:
            error = e
            continue
        if not isinstance(data, dict):
            raise AnalysisParseError(f"reply is JSON {type(data).__name__}, expected object")
        return data, True
    raise AnalysisParseError(f"reply is not JSON: {error}") from error


def fold_ascii(text: Optional[str]) -> Optional[str]:
    """Drop diacritics (ă -> a, ș -> s)."""
    if not text:
        return text
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


# ============================================================================
# ANALYZER
# ============================================================================

def build_user_payload(report: DiagnosticReport, today: date) -> dict:
    return {
        "instr": USER_INSTRUCTION,
        "meta": {
            "vin": report.vin,
            "brand": report.make,
            "model": report.model,
            "kilometraj": report.mileage,
            "data_scanarii": today.isoformat(),
        },
        "dtc_list": [d.to_dict() for d in report.dtcs],
    }


def _iso_date_or(value: str, default: date) -> str:
    try:
        return date.fromisoformat((value or "")[:10]).isoformat()
    except ValueError:
        return default.isoformat()


class ReportAnalyzer:
    """
    Explains a DiagnosticReport through the reasoning service.

    Args:
        complete: Callable sending (system, user) to the service and returning
                  its raw text. None means no service is configured and every
                  report gets the fallback analysis.
        ascii_only: Strip diacritics from every text field of the result.
        clock: Source of today's date (scan date default, request metadata).
        max_attempts: Service calls before falling back.
    """

    def __init__(
        self,
        complete: Optional[CompletionFn] = None,
        ascii_only: bool = True,
        clock: Callable[[], date] = date.today,
        max_attempts: int = 2,
    ):
        self.complete = complete
        self.ascii_only = ascii_only
        self.clock = clock
        self.max_attempts = max(1, max_attempts)

    def build_request(self, report: DiagnosticReport) -> Tuple[str, str]:
        user = build_user_payload(report, self.clock())
        return SYSTEM_PROMPT, json.dumps(user, ensure_ascii=False)

    def analyze(self, report: DiagnosticReport) -> AnalysisResult:
        return self.run(report).result

    def run(self, report: DiagnosticReport) -> AnalysisOutcome:
        """Call, repair, retry once, then fall back. Never raises."""
        if self.complete is None:
            logger.info("No reasoning service configured; using fallback analysis")
            return AnalysisOutcome(self.fallback(report), Provenance.FALLBACK, attempts=0)

        system, user = self.build_request(report)
        attempts = 0
        while attempts < self.max_attempts:
            attempts += 1
            try:
                raw = self.complete(system, user)
                data, repaired = parse_analysis_payload(raw)
            except AnalysisParseError as e:
                logger.warning(f"Analysis attempt {attempts}/{self.max_attempts} unusable: {e}")
                continue
            except Exception as e:
                logger.warning(
                    f"Analysis attempt {attempts}/{self.max_attempts} failed: {type(e).__name__}: {e}"
                )
                continue

            provenance = Provenance.REPAIRED if repaired else Provenance.PARSED
            logger.info(f"Analysis {provenance.value} after {attempts} attempt(s)")
            result = self.finalize(AnalysisResult.from_dict(data), report)
            return AnalysisOutcome(result, provenance, attempts)

        logger.warning(f"Analysis could not be validated after {attempts} attempts; using fallback")
        return AnalysisOutcome(self.fallback(report), Provenance.FALLBACK, attempts)

    def fallback(self, report: DiagnosticReport) -> AnalysisResult:
        """Minimal analysis straight from the raw DTCs."""
        errors = [
            InitialError(
                code=d.code,
                description=d.raw_description or f"Cod raportat de modulul {d.module}.",
                possible_cause=GENERIC_CAUSE,
                recommendation=GENERIC_RECOMMENDATION,
            )
            for d in report.dtcs
        ]
        result = AnalysisResult(
            initial_errors=tuple(errors),
            conclusion=FALLBACK_CONCLUSION,
            todo=FALLBACK_TODO,
        )
        return self.finalize(result, report)

    def finalize(self, result: AnalysisResult, report: DiagnosticReport) -> AnalysisResult:
        """Fill vehicle gaps from the report and enforce the non-empty rules."""
        vehicle = result.vehicle
        vehicle = VehicleInfo(
            brand=vehicle.brand or report.make,
            model=vehicle.model or report.model,
            year=vehicle.year,
            engine=vehicle.engine,
            mileage=vehicle.mileage or report.mileage,
            scan_date=_iso_date_or(vehicle.scan_date, self.clock()),
        )

        conclusion = result.conclusion
        todo = result.todo
        if not result.initial_errors:
            conclusion = NO_DTC_CONCLUSION
            todo = NO_DTC_TODO
        else:
            conclusion = conclusion or DEFAULT_CONCLUSION
            todo = todo or FALLBACK_TODO

        result = replace(result, vehicle=vehicle, conclusion=conclusion, todo=tuple(todo))
        if self.ascii_only:
            result = _fold_result(result)
        return result


def _fold_result(result: AnalysisResult) -> AnalysisResult:
    v = result.vehicle
    vehicle = VehicleInfo(
        brand=fold_ascii(v.brand),
        model=fold_ascii(v.model),
        year=fold_ascii(v.year),
        engine=fold_ascii(v.engine),
        mileage=fold_ascii(v.mileage),
        scan_date=v.scan_date,
    )
    errors: List[InitialError] = [
        InitialError(
            code=fold_ascii(e.code),
            description=fold_ascii(e.description),
            possible_cause=fold_ascii(e.possible_cause),
            recommendation=fold_ascii(e.recommendation),
        )
        for e in result.initial_errors
    ]
    todo = [TodoItem(nr=t.nr, text=fold_ascii(t.text)) for t in result.todo]
    return AnalysisResult(
        vehicle=vehicle,
        initial_errors=tuple(errors),
        conclusion=fold_ascii(result.conclusion),
        todo=tuple(todo),
    )
