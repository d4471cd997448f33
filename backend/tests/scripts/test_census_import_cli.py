import json
import sys

from app.scripts import census_import as census_import_script
from app.services.census.store import JsonFileDocumentStore


def _write_census(tmp_path, census_text):
    path = tmp_path / "census.txt"
    path.write_text(census_text, encoding="utf-8")
    return path


def test_cli_dry_run_does_not_touch_store(tmp_path, census_text, monkeypatch, capsys):
    census = _write_census(tmp_path, census_text)
    document = tmp_path / "facility.json"
    monkeypatch.setattr(
        sys, "argv", ["census_import.py", str(census), "--path", str(document)]
    )
    assert census_import_script.main() == 0
    output = json.loads(capsys.readouterr().out)
    assert output["mode"] == "dry-run"
    assert output["selected"] == ["row-1", "row-2", "row-3"]
    assert output["summary"]["total"] == 3
    assert not document.exists()


def test_cli_apply_requires_confirm(tmp_path, census_text, monkeypatch, capsys):
    census = _write_census(tmp_path, census_text)
    monkeypatch.setattr(sys, "argv", ["census_import.py", str(census), "--apply"])
    assert census_import_script.main() == 2
    assert "Refusing to apply without --confirm APPLY." in capsys.readouterr().out


def test_cli_apply_writes_json_document(tmp_path, census_text, monkeypatch, capsys):
    census = _write_census(tmp_path, census_text)
    document = tmp_path / "facility.json"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "census_import.py",
            str(census),
            "--path",
            str(document),
            "--apply",
            "--confirm",
            "APPLY",
            "--user",
            "icn",
        ],
    )
    assert census_import_script.main() == 0
    output = json.loads(capsys.readouterr().out)
    assert output["stats"]["residents_created"] == 3
    stored = JsonFileDocumentStore(document).load()
    assert set(stored.residents) == {"MRN100", "MRN200", "MRN300"}
    assert stored.audit_log[0].user == "icn"


def test_cli_select_all_blocks_error_rows(tmp_path, census_text, monkeypatch, capsys):
    census = _write_census(tmp_path, census_text + "Unit 9 901 GHOST, CASPER (MRN7) 01/01/1950\n")
    document = tmp_path / "facility.json"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "census_import.py",
            str(census),
            "--path",
            str(document),
            "--select-all",
            "--apply",
            "--confirm",
            "APPLY",
        ],
    )
    assert census_import_script.main() == 2
    output = json.loads(capsys.readouterr().out)
    assert output["error_keys"] == ["row-5"]
    assert not document.exists()


def test_cli_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["census_import.py", str(tmp_path / "nope.txt")])
    assert census_import_script.main() == 1
    assert "Census file does not exist" in capsys.readouterr().err
