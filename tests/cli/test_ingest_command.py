from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from reyestr.cli.main import create_app

MEMBERS = {
    "UO": "UO_FULL_out.xml",
    "FOP": "FOP_FULL_out.xml",
    "FSU": "FSU_FULL_out.xml",
}


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def snapshot_zip(make_archive, registry_xml, record_xml) -> Path:
    return make_archive(
        {
            MEMBERS["UO"]: registry_xml([record_xml(str(i), f"ТОВ {i}") for i in range(3)] + [record_xml(None, "no key")]),
            MEMBERS["FOP"]: registry_xml([record_xml("F1", "ФОП Іваненко")]),
        }
    )


def _invoke(runner: CliRunner, tmp_path: Path, *args: str, output: Path | None = None):
    base = ["--log-level", "ERROR", "--config", str(tmp_path / "absent.toml"), "--format", "jsonl"]
    if output is not None:
        base += ["--output", str(output)]
    return runner.invoke(create_app(), [*base, *args])


def _rows(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_ingest_prints_summary_and_succeeds(runner, tmp_path, snapshot_zip) -> None:
    database = tmp_path / "registry.duckdb"
    out = tmp_path / "summary.jsonl"

    result = _invoke(runner, tmp_path, "ingest", str(snapshot_zip), "--database", str(database), output=out)

    assert result.exit_code == 0, result.output
    rows = {row["category"]: row for row in _rows(out)}
    assert rows["legal_entities"]["state"] == "done"
    assert rows["legal_entities"]["imported"] == 3
    assert rows["legal_entities"]["skipped_invalid"] == 1
    assert rows["sole_proprietors"]["inserted"] == 1
    assert rows["public_associations"]["state"] == "skipped"
    assert database.exists()


def test_ingest_twice_updates_rows(runner, tmp_path, snapshot_zip) -> None:
    database = tmp_path / "registry.duckdb"
    out = tmp_path / "summary.jsonl"
    _invoke(runner, tmp_path, "ingest", str(snapshot_zip), "-d", str(database), output=out)

    result = _invoke(runner, tmp_path, "ingest", str(snapshot_zip), "-d", str(database), "--diff", output=out)

    assert result.exit_code == 0, result.output
    rows = {row["category"]: row for row in _rows(out)}
    assert rows["legal_entities"]["unchanged"] == 3
    assert rows["legal_entities"]["inserted"] == 0


def test_ingest_selected_category_only(runner, tmp_path, snapshot_zip) -> None:
    out = tmp_path / "summary.jsonl"

    result = _invoke(
        runner, tmp_path, "ingest", str(snapshot_zip), "-d", str(tmp_path / "r.duckdb"), "--category", "FOP", output=out
    )

    assert result.exit_code == 0, result.output
    assert [row["category"] for row in _rows(out)] == ["sole_proprietors"]


def test_failed_category_exits_with_one(runner, tmp_path, snapshot_zip) -> None:
    config = tmp_path / "config.toml"
    config.write_text('[pipeline]\nmandatory = ["FSU"]\n', encoding="utf-8")
    out = tmp_path / "summary.jsonl"

    result = runner.invoke(
        create_app(),
        [
            "--log-level", "ERROR", "--config", str(config), "--format", "jsonl", "--output", str(out),
            "ingest", str(snapshot_zip), "-d", str(tmp_path / "r.duckdb"),
        ],
    )

    assert result.exit_code == 1
    rows = {row["category"]: row for row in _rows(out)}
    assert rows["public_associations"]["state"] == "failed"
    assert rows["legal_entities"]["state"] == "done"


def test_newest_archive_from_data_dir(runner, tmp_path, make_archive, registry_xml, record_xml) -> None:
    older = make_archive({MEMBERS["UO"]: registry_xml([record_xml("1", "Old")])}, name="a.zip")
    newer = make_archive({MEMBERS["UO"]: registry_xml([record_xml("1", "New"), record_xml("2", "Two")])}, name="b.zip")
    os.utime(older, (1_700_000_000, 1_700_000_000))
    os.utime(newer, (1_700_100_000, 1_700_100_000))
    out = tmp_path / "summary.jsonl"

    result = runner.invoke(
        create_app(),
        ["--log-level", "ERROR", "--config", str(tmp_path / "absent.toml"), "-f", "jsonl", "-o", str(out),
         "ingest", "-d", str(tmp_path / "r.duckdb")],
        env={"REYESTR_DATA_DIR": str(tmp_path)},
    )

    assert result.exit_code == 0, result.output
    assert {row["category"]: row for row in _rows(out)}["legal_entities"]["imported"] == 2


def test_missing_archive_exits_with_two(runner, tmp_path) -> None:
    result = _invoke(runner, tmp_path, "ingest", str(tmp_path / "missing.zip"), "-d", str(tmp_path / "r.duckdb"))

    assert result.exit_code == 2
    assert "ARCHIVE_ERROR" in result.output


def test_unknown_category_is_a_usage_error(runner, tmp_path, snapshot_zip) -> None:
    result = _invoke(runner, tmp_path, "ingest", str(snapshot_zip), "--category", "banks")

    assert result.exit_code == 2


def test_invalid_batch_size_env_exits_with_two(runner, tmp_path, snapshot_zip) -> None:
    result = runner.invoke(
        create_app(),
        ["--log-level", "ERROR", "--config", str(tmp_path / "absent.toml"), "ingest", str(snapshot_zip)],
        env={"REYESTR_BATCH_SIZE": "lots"},
    )

    assert result.exit_code == 2
    assert "CONFIG_ERROR" in result.output


def test_unopenable_database_exits_with_three(runner, tmp_path, snapshot_zip) -> None:
    directory = tmp_path / "db-dir"
    directory.mkdir()

    result = _invoke(runner, tmp_path, "ingest", str(snapshot_zip), "-d", str(directory))

    assert result.exit_code == 3
    assert "STORE_ERROR" in result.output


def test_table_output_is_written(runner, tmp_path, snapshot_zip) -> None:
    out = tmp_path / "summary.txt"

    result = runner.invoke(
        create_app(),
        ["--log-level", "ERROR", "--config", str(tmp_path / "absent.toml"), "--no-color", "-o", str(out),
         "ingest", str(snapshot_zip), "-d", str(tmp_path / "r.duckdb")],
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").strip()
