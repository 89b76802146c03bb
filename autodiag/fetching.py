"""
HTTP access: vendor report pages, the remote template and its stylesheet.
"""
import logging
from pathlib import Path
from typing import Optional

import requests

from config import TemplateConfig

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; AutoDiagReports/1.0)"


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers['User-Agent'] = USER_AGENT
    return session


class ReportFetcher:
    """Downloads text resources; failures come back as None, never raised."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = 30):
        self.session = session or build_session()
        self.timeout = timeout

    def fetch(self, url: str) -> Optional[str]:
        """GET url following redirects. None on network error or non-2xx."""
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            return None

        if not resp.ok:
            logger.warning(f"Fetch of {url} returned HTTP {resp.status_code}")
            return None

        if not resp.encoding or resp.encoding.lower() == "iso-8859-1":
            resp.encoding = resp.apparent_encoding or "utf-8"
        return resp.text


class TemplateSource:
    """
    Supplies the report template and, for e-mail, its stylesheet.

    The remote TEMPLATE_URL wins when it answers; otherwise the local file
    (TEMPLATE_PATH or the packaged default) is read.
    """

    def __init__(self, config: TemplateConfig, fetcher: Optional[ReportFetcher] = None):
        self.config = config
        self.fetcher = fetcher or ReportFetcher()

    def load(self) -> str:
        if self.config.template_url:
            html = self.fetcher.fetch(self.config.template_url)
            if html:
                logger.debug(f"Template loaded from {self.config.template_url}")
                return html
            logger.warning("TEMPLATE_URL unavailable, using local template")

        path = Path(self.config.template_path)
        logger.debug(f"Template loaded from {path}")
        return path.read_text(encoding="utf-8")

    def stylesheet(self) -> Optional[str]:
        """CSS to inline into the e-mail body, or None when disabled/unavailable."""
        if not self.config.inline_css or not self.config.css_url:
            return None
        return self.fetcher.fetch(self.config.css_url)
