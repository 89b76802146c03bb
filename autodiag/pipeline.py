"""
Pipeline orchestrator: one vendor report from URL to delivered HTML.

    fetch -> extract -> analyze -> render -> save -> e-mail

The core stages (extract, analyze, render) never raise; only the fetch can
end a run early, in which case nothing is written or sent.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import Settings

from .analysis import ReportAnalyzer
from .assets import absolutize_assets, inline_stylesheet, report_file_name, strip_scripts
from .extraction import ReportExtractor
from .fetching import ReportFetcher, TemplateSource
from .llm import build_completion
from .models import AnalysisResult, DiagnosticReport, RenderedReport
from .rendering import TemplateRenderer
from .reporting import ReportMailer

logger = logging.getLogger(__name__)


@dataclass
class ProcessedReport:
    """What one pipeline run produced."""
    rendered: RenderedReport
    path: Path
    emailed: bool = False


class DiagnosticPipeline:
    """Wires the core stages to the I/O around them."""

    def __init__(
        self,
        settings: Settings,
        fetcher: Optional[ReportFetcher] = None,
        extractor: Optional[ReportExtractor] = None,
        analyzer: Optional[ReportAnalyzer] = None,
        renderer: Optional[TemplateRenderer] = None,
        templates: Optional[TemplateSource] = None,
        mailer: Optional[ReportMailer] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or ReportFetcher(timeout=settings.request_timeout)
        self.extractor = extractor or ReportExtractor()
        self.analyzer = analyzer or ReportAnalyzer(
            complete=build_completion(settings.analyzer),
            ascii_only=settings.analyzer.ascii_only,
        )
        self.renderer = renderer or TemplateRenderer()
        self.templates = templates or TemplateSource(settings.template, self.fetcher)
        self.mailer = mailer or ReportMailer(settings.smtp, timeout=settings.request_timeout)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_url(self, url: str) -> Optional[ProcessedReport]:
        """Full run for a report link. None when the page cannot be fetched."""
        logger.info(f"Processing report {url}")
        html = self.fetcher.fetch(url)
        if html is None:
            logger.warning(f"Report page unavailable, skipping: {url}")
            return None
        return self.process_page(html, url)

    def process_page(self, html: str, url: str = "") -> ProcessedReport:
        """Run everything after the fetch on an already downloaded page."""
        report = self.extractor.extract(html, url)
        logger.info(
            f"Report VIN={report.vin or '-'} make={report.make or '-'} "
            f"model={report.model or '-'} dtcs={len(report.dtcs)}"
        )

        outcome = self.analyzer.run(report)
        logger.info(f"Analysis {outcome.provenance.value} ({outcome.attempts} service calls)")

        rendered = self.render(report, outcome.result)
        path = self.save(rendered)

        emailed = False
        if self.settings.send_email:
            emailed = self.mailer.send(rendered, path)
        else:
            logger.info("Email sending skipped (NO_EMAIL=true)")

        return ProcessedReport(rendered=rendered, path=path, emailed=emailed)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def render(self, report: DiagnosticReport, analysis: AnalysisResult) -> RenderedReport:
        template = absolutize_assets(self.templates.load(), self.settings.template.assets_base_url)
        html = self.renderer.render(template, report, analysis)

        email_html = strip_scripts(inline_stylesheet(html, self.templates.stylesheet()))

        return RenderedReport(
            html=html,
            email_html=email_html,
            file_name=report_file_name(report.vin),
            report=report,
            analysis=analysis,
        )

    def save(self, rendered: RenderedReport) -> Path:
        out_dir = Path(self.settings.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / rendered.file_name
        path.write_text(rendered.html, encoding="utf-8")
        logger.info(f"Report saved to {path}")
        return path
