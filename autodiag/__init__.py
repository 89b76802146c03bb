"""
TOPDON Diagnostic Report Agent
==============================

Turns the HTML report a TOPDON scan tool publishes into an explained,
branded diagnostic report: fault codes are extracted from the vendor page,
explained by an LLM under a strict JSON schema, and rendered into the
workshop's HTML template.

Usage:
    from autodiag import DiagnosticPipeline
    from config import Settings

    pipeline = DiagnosticPipeline(Settings.from_env())
    result = pipeline.process_url("https://...topdon.../report")
"""

from .models import (
    AnalysisOutcome,
    AnalysisResult,
    DiagnosticReport,
    DtcRecord,
    InitialError,
    Provenance,
    RenderedReport,
    TodoItem,
    VehicleInfo,
)
from .links import extract_report_link, is_vendor_message
from .extraction import ExtractionConfig, ReportExtractor, extract
from .analysis import ReportAnalyzer
from .rendering import LoopBlock, TemplateRenderer, render
from .fetching import ReportFetcher, TemplateSource
from .inbox import InboundMessage, InboxReader
from .reporting import ReportMailer
from .pipeline import DiagnosticPipeline, ProcessedReport

__all__ = [
    "AnalysisOutcome",
    "AnalysisResult",
    "DiagnosticReport",
    "DtcRecord",
    "InitialError",
    "Provenance",
    "RenderedReport",
    "TodoItem",
    "VehicleInfo",
    "extract_report_link",
    "is_vendor_message",
    "ExtractionConfig",
    "ReportExtractor",
    "extract",
    "ReportAnalyzer",
    "LoopBlock",
    "TemplateRenderer",
    "render",
    "ReportFetcher",
    "TemplateSource",
    "InboundMessage",
    "InboxReader",
    "ReportMailer",
    "DiagnosticPipeline",
    "ProcessedReport",
]

__version__ = "1.0.0"
