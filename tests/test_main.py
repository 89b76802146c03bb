"""Tests for main.py — command line entry point."""

import pytest

import main


REPORT_HTML = """
<html><body>
  <p>VIN: 1HGCM82633A004352 Make: Toyota</p>
  <div>ENGINE CTRL 1A2B Misfire detected Cylinder 2 Permanent</div>
</body></html>
"""


@pytest.fixture
def offline_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "TEMPLATE_URL", "ASSETS_BASE_URL",
                 "CSS_URL", "OUTPUT_DIR", "NO_EMAIL", "AI_PROVIDER", "TEMPLATE_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    return monkeypatch


def test_parse_args_defaults():
    args = main.parse_args([])
    assert not args.once
    assert args.url is None
    assert args.file is None
    assert not args.no_email


def test_source_options_are_exclusive():
    with pytest.raises(SystemExit):
        main.parse_args(["--once", "--url", "https://www.topdon.com/r/1"])


def test_file_mode_renders_report(offline_env, tmp_path, capsys):
    page = tmp_path / "saved.html"
    page.write_text(REPORT_HTML, encoding="utf-8")
    out_dir = tmp_path / "out"

    code = main.main(["--file", str(page), "--no-email", "--output-dir", str(out_dir)])

    assert code == 0
    saved = out_dir / "Raport_1HGCM82633A004352.html"
    assert saved.exists()
    assert "1A2B" in saved.read_text(encoding="utf-8")
    assert "DTCs extracted: 1" in capsys.readouterr().out


def test_url_mode_failure_exit_code(offline_env, tmp_path, monkeypatch):
    monkeypatch.setattr("autodiag.fetching.ReportFetcher.fetch", lambda self, url: None)

    code = main.main(["--url", "https://www.topdon.com/r/404", "--no-email",
                      "--output-dir", str(tmp_path)])
    assert code == 1
