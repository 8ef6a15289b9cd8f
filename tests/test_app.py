from __future__ import annotations

import io
import sys
from pathlib import Path

from PIL import Image

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from searchable_scan.app import _default_output_path, main
from searchable_scan.config import Settings


def _offline_settings(monkeypatch) -> None:
    settings = Settings(_env_file=None, vision_key=None, vision_endpoint=None, poll_interval_seconds=0)
    monkeypatch.setattr("searchable_scan.app.get_settings", lambda: settings)


def _write_png(path: Path) -> Path:
    buffer = io.BytesIO()
    Image.new("RGB", (120, 80), color="white").save(buffer, format="PNG")
    path.write_bytes(buffer.getvalue())
    return path


def test_default_output_path(tmp_path: Path):
    assert _default_output_path(tmp_path / "scan.png") == tmp_path / "scan_searchable.pdf"
    assert _default_output_path(tmp_path / "scan.png", tmp_path / "out") == tmp_path / "out" / "scan_searchable.pdf"


def test_main_writes_searchable_pdf_next_to_input(monkeypatch, tmp_path: Path, capsys):
    _offline_settings(monkeypatch)
    source = _write_png(tmp_path / "receipt.png")

    rc = main([str(source), "--quiet"])

    assert rc == 0
    assert (tmp_path / "receipt_searchable.pdf").exists()
    out = capsys.readouterr().out
    assert "receipt.png: 1 page(s), confidence 50%, engine simulation" in out
    assert "Done: 1 document(s) processed" in out


def test_main_honours_output_dir(monkeypatch, tmp_path: Path):
    _offline_settings(monkeypatch)
    first = _write_png(tmp_path / "a.png")
    second = _write_png(tmp_path / "b.png")
    output_dir = tmp_path / "out"

    rc = main([str(first), str(second), "--output-dir", str(output_dir), "--quiet"])

    assert rc == 0
    assert sorted(path.name for path in output_dir.iterdir()) == ["a_searchable.pdf", "b_searchable.pdf"]


def test_main_missing_input(tmp_path: Path, capsys):
    rc = main([str(tmp_path / "missing.png")])

    assert rc == 2
    assert "Input file not found" in capsys.readouterr().err


def test_main_rejects_bad_attempt_count(tmp_path: Path, capsys):
    source = _write_png(tmp_path / "scan.png")

    rc = main([str(source), "--max-attempts", "0"])

    assert rc == 2
    assert "--max-attempts must be >= 1" in capsys.readouterr().err


def test_main_reports_unsupported_input(monkeypatch, tmp_path: Path, capsys):
    _offline_settings(monkeypatch)
    notes = tmp_path / "notes.txt"
    notes.write_text("plain text", encoding="utf-8")
    source = _write_png(tmp_path / "scan.png")

    rc = main([str(notes), str(source), "--quiet"])

    assert rc == 2
    captured = capsys.readouterr()
    assert "Unsupported content type 'text/plain'" in captured.err
    assert "1 of 2 document(s) failed" in captured.err
    assert "scan.png: 1 page(s)" in captured.out


def test_main_applies_engine_overrides(monkeypatch, tmp_path: Path):
    _offline_settings(monkeypatch)
    seen: dict[str, Settings] = {}

    def fake_batch(documents, settings, **_kwargs):
        seen["settings"] = settings
        return []

    monkeypatch.setattr("searchable_scan.app.process_batch", fake_batch)
    source = _write_png(tmp_path / "scan.png")

    rc = main([str(source), "--engine", "tesseract", "--lang", "deu", "--max-attempts", "7", "--quiet"])

    assert rc == 0
    assert seen["settings"].engine == "tesseract"
    assert seen["settings"].tesseract_lang == "deu"
    assert seen["settings"].max_poll_attempts == 7
