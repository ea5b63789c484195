import csv
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from school_finder.output import neutralize_csv_field, sanitize_path, write_records
from school_finder.records import SchoolRecord


REPO_ROOT = Path(__file__).resolve().parents[1]


def _run_cli(*args):
    env = dict(os.environ)
    env["PYTHONPATH"] = str(REPO_ROOT / "src")
    cmd = [sys.executable, "-m", "school_finder", *args]
    return subprocess.run(
        cmd, capture_output=True, text=True, check=False, env=env, cwd=str(REPO_ROOT)
    )


def test_dry_run_prints_planned_queries():
    proc = _run_cli("--school", "Lincoln", "--district-id", "4900420", "--dry-run")
    assert proc.returncode == 0, proc.stderr
    lines = proc.stdout.strip().splitlines()
    assert lines[0].startswith("private: https://")
    assert lines[1].startswith("public: https://")
    assert "resultRecordCount=100" in lines[0]
    assert "LEAID" in lines[0]
    assert json.loads(lines[-1]) == {"kind": "school", "query": "Lincoln", "planned": 2}


def test_district_and_school_flags_conflict():
    proc = _run_cli("--district", "Ogden", "--school", "Lincoln")
    assert proc.returncode == 2


def test_output_traversal_rejected_before_search():
    proc = _run_cli("--district", "Ogden", "--output", "../outside.jsonl")
    assert proc.returncode == 1
    assert "error" in json.loads(proc.stdout.splitlines()[-1])


@pytest.mark.parametrize(
    "bad",
    ["../outside.jsonl", "..\\outside.jsonl", "/etc/passwd", "report\u202elsnoj.csv", ""],
)
def test_sanitize_path_rejects(bad, tmp_path):
    with pytest.raises(ValueError):
        sanitize_path(bad, tmp_path / "project")


def test_sanitize_path_rejects_symlinked_parent(tmp_path):
    project = tmp_path / "project"
    (project / "real").mkdir(parents=True)
    (project / "link").symlink_to(project / "real", target_is_directory=True)
    with pytest.raises(ValueError):
        sanitize_path("link/out.csv", project)
    assert sanitize_path("real/out.csv", project) == project.resolve() / "real" / "out.csv"


def test_sanitize_path_accepts_relative(tmp_path):
    assert sanitize_path("out/schools.jsonl", tmp_path) == tmp_path.resolve() / "out" / "schools.jsonl"


def test_csv_injection_neutralized():
    for value in ('=CMD("calc")', "+SUM(1,2)", "-2+3", '@IMPORT("evil")'):
        assert neutralize_csv_field(value).startswith("'")
    assert neutralize_csv_field(None) == ""
    assert neutralize_csv_field("Lincoln") == "Lincoln"


def test_write_records_formats(tmp_path):
    records = [
        SchoolRecord(nces_id="1", name="=Lincoln", latitude=41.0, longitude=-111.0),
        SchoolRecord(nces_id="2", name="Hope"),
    ]
    jsonl = tmp_path / "out.jsonl"
    write_records(records, jsonl, "jsonl")
    write_records(records[:1], jsonl, "jsonl", append=True)
    assert len(jsonl.read_text().splitlines()) == 3

    as_json = tmp_path / "out.json"
    write_records(records, as_json, "json")
    write_records(records, as_json, "json", append=True)
    assert [r["nces_id"] for r in json.loads(as_json.read_text())] == ["1", "2", "1", "2"]

    as_csv = tmp_path / "out.csv"
    write_records(records, as_csv, "csv")
    with as_csv.open(newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert rows[0]["name"] == "'=Lincoln"
    assert rows[1]["latitude"] == ""

    with pytest.raises(ValueError):
        write_records(records, tmp_path / "out.xml", "xml")
