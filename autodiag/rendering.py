"""
Fills the HTML report template.

Two mechanisms, both plain string work:

* scalar placeholders  ``{{vehicul.brand}}`` replaced everywhere;
* loop blocks          a row template between ``<!-- BEGIN:TOKEN -->`` and
                       ``<!-- END:TOKEN -->`` inside the element with a given
                       id, repeated once per record.

Anything the template does not contain is left alone.
"""
import html as html_lib
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from .models import AnalysisResult, DiagnosticReport

LAST_ROW_MARKER = "<!--__LASTROW__-->"
ROW_SEPARATOR_PATTERN = r"<tr\b[^>]*class=[\"'][^\"']*\brow-sep\b[^\"']*[\"'][^>]*>[\s\S]*?</tr>"

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


@dataclass(frozen=True)
class LoopBlock:
    """A repeatable row region of the template."""
    token: str         # sentinel name, e.g. ROW_TEMPLATE_PAS1
    container_id: str  # id of the element wrapping the sentinels
    separator_pattern: str = ROW_SEPARATOR_PATTERN  # dropped after the last row


ERRORS_BLOCK = LoopBlock(token="ROW_TEMPLATE_PAS1", container_id="rows_pas1")
TODO_BLOCK = LoopBlock(token="ROW_TEMPLATE_TODO", container_id="rows_todo")


def _html_value(value: Any) -> str:
    if value is None:
        return ""
    return html_lib.escape(str(value), quote=True)


def substitute(template: str, values: Mapping[str, Any]) -> str:
    """Replace every known {{key}} in one pass; unknown keys stay as they are."""
    def _sub(match):
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return _html_value(values[key])

    return _PLACEHOLDER_RE.sub(_sub, template)


def build_scalar_map(report: DiagnosticReport, analysis: AnalysisResult) -> Dict[str, Optional[str]]:
    vehicle = analysis.vehicle
    return {
        "vin": report.vin,
        "vehicul.brand": vehicle.brand,
        "vehicul.model": vehicle.model,
        "vehicul.an": vehicle.year,
        "vehicul.motorizare": vehicle.engine,
        "vehicul.kilometraj": vehicle.mileage,
        "vehicul.data_scanarii": vehicle.scan_date,
        "concluzie": analysis.conclusion,
    }


def _container_pattern(block: LoopBlock) -> re.Pattern:
    token = re.escape(block.token)
    return re.compile(
        r"(?P<open><(?P<tag>[a-zA-Z][\w-]*)\b[^>]*\bid=[\"']" + re.escape(block.container_id) + r"[\"'][^>]*>)"
        r"(?P<body>[\s\S]*?BEGIN:" + token + r"[\s\S]*?END:" + token + r"[\s\S]*?)"
        r"(?P<close></(?P=tag)\s*>)"
    )


def render_loop(html: str, block: LoopBlock, rows: Sequence[Mapping[str, Any]]) -> str:
    """Replace the block's container content with one rendered row per record."""
    match = _container_pattern(block).search(html)
    if not match:
        return html

    token = re.escape(block.token)
    inner = re.search(
        r"BEGIN:" + token + r"[^>]*-->(?P<row>[\s\S]*?)<!--\s*END:" + token,
        match.group("body"),
    )
    if not inner:
        return html
    row_template = inner.group("row").strip()

    rendered = [substitute(row_template, values) for values in rows]
    if rendered:
        last = rendered[-1]
        separator = re.search(r"(?:" + block.separator_pattern + r")\s*$", last)
        if separator:
            rendered[-1] = last[:separator.start()] + LAST_ROW_MARKER + "\n" + last[separator.start():]
        else:
            rendered[-1] = last + LAST_ROW_MARKER

    body = "\n" + "\n".join(rendered) + "\n" if rendered else "\n"
    return html[:match.start()] + match.group("open") + body + match.group("close") + html[match.end():]


def strip_markers(html: str, separator_pattern: str = ROW_SEPARATOR_PATTERN) -> str:
    """Final cleanup: the last-row marker and the separator row that follows it."""
    html = re.sub(re.escape(LAST_ROW_MARKER) + r"\s*(?:" + separator_pattern + r")?", "", html)
    return html.replace(LAST_ROW_MARKER, "")


class TemplateRenderer:
    """Renders a report template for one (report, analysis) pair."""

    def __init__(self, errors_block: LoopBlock = ERRORS_BLOCK, todo_block: LoopBlock = TODO_BLOCK):
        self.errors_block = errors_block
        self.todo_block = todo_block

    def render(self, template: str, report: DiagnosticReport, analysis: AnalysisResult) -> str:
        html = substitute(template, build_scalar_map(report, analysis))
        html = render_loop(html, self.errors_block, [e.to_dict() for e in analysis.initial_errors])
        html = render_loop(html, self.todo_block, [t.to_dict() for t in analysis.todo])
        html = strip_markers(html, self.errors_block.separator_pattern)
        if self.todo_block.separator_pattern != self.errors_block.separator_pattern:
            html = strip_markers(html, self.todo_block.separator_pattern)
        return html


def render(template: str, report: DiagnosticReport, analysis: AnalysisResult) -> str:
    return TemplateRenderer().render(template, report, analysis)
