#!/usr/bin/env python3
"""
TOPDON Diagnostic Report Agent - Main Entry Point

Usage:
    python main.py                        # Poll the inbox forever (with /health)
    python main.py --once                 # Single inbox check, then exit
    python main.py --url <report link>    # Process one report link
    python main.py --file report.html     # Process a saved report page
    python main.py --no-email             # Render and save, don't send
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from autodiag.pipeline import DiagnosticPipeline
from config import Settings


def setup_logging(verbose: bool = False, log_file: str = None):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TOPDON Diagnostic Report Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # Poll inbox every POLL_SECONDS
  python main.py --once --verbose                 # One poll with debug logging
  python main.py --url https://... --no-email     # Render one report locally
  python main.py --file saved_report.html         # Offline run on a saved page
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--once",
        action="store_true",
        help="Check the inbox once and exit"
    )
    source.add_argument(
        "--url",
        type=str,
        help="Process a single report URL instead of polling"
    )
    source.add_argument(
        "--file",
        type=str,
        help="Process a report page saved on disk"
    )
    parser.add_argument(
        "--no-email",
        action="store_true",
        help="Don't send the rendered report by email"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for rendered reports (default: OUTPUT_DIR or ./out)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    logger = logging.getLogger(__name__)
    logger.info("Starting TOPDON Diagnostic Report Agent")

    settings = Settings.from_env()
    if args.no_email:
        settings.send_email = False
    if args.output_dir:
        settings.output_dir = args.output_dir

    if args.url or args.file:
        pipeline = DiagnosticPipeline(settings)
        if args.url:
            result = pipeline.process_url(args.url)
        else:
            html = Path(args.file).read_text(encoding="utf-8")
            result = pipeline.process_page(html, url=args.file)

        if result is None:
            logger.error("Report could not be processed")
            return 1

        print("\n" + "=" * 60)
        print("DIAGNOSTIC REPORT SUMMARY")
        print("=" * 60)
        print(f"VIN: {result.rendered.report.vin or '-'}")
        print(f"DTCs extracted: {len(result.rendered.report.dtcs)}")
        print(f"Saved to: {result.path}")
        print(f"Email sent: {'Yes' if result.emailed else 'No'}")
        print("=" * 60)
        return 0

    from poller import ReportPoller, start_health_server

    poller = ReportPoller(settings=settings)
    if args.once:
        poller.run_once()
        return 0

    start_health_server(settings.health_port)
    try:
        poller.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        poller.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
