"""Tests for the command-line interface."""

import json

import click
import pytest
from click.testing import CliRunner

from cartridge_history.cli import cli, load_parser


def _invoke(*args):
    return CliRunner().invoke(cli, [str(arg) for arg in args])


def _record(config, pos, ddl):
    return _invoke(
        "record", "-c", config,
        "--source", '{"server": "mysql-1"}',
        "--position", json.dumps({"pos": pos}),
        "--database", "inventory",
        "--ddl", ddl,
    )


def test_init_writes_template(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = _invoke("init")

    assert result.exit_code == 0
    assert (tmp_path / "cartridge-history-config.yaml").exists()
    assert _invoke("validate", "-c", tmp_path / "cartridge-history-config.yaml").exit_code == 0


def test_validate(sample_config_file):
    result = _invoke("validate", "-c", sample_config_file)

    assert result.exit_code == 0
    assert "Configuration is valid" in result.output


def test_validate_rejects_invalid_config(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("storage:\n  type: postgresql\n")

    result = _invoke("validate", "-c", config_file)

    assert result.exit_code == 1
    assert "Configuration is invalid" in result.output


def test_init_storage_and_status(sample_config_file, tmp_path):
    history_file = tmp_path / "history" / "schema-history.jsonl"

    result = _invoke("init-storage", "-c", sample_config_file)

    assert result.exit_code == 0
    assert history_file.exists()

    result = _invoke("status", "-c", sample_config_file)
    assert result.exit_code == 0
    assert "inventory-history" in result.output


def _status_row(output, label):
    return next(line for line in output.splitlines() if label in line)


def test_status_reports_whether_history_is_populated(sample_config_file):
    assert _invoke("init-storage", "-c", sample_config_file).exit_code == 0

    result = _invoke("status", "-c", sample_config_file)
    assert "No" in _status_row(result.output, "History Populated")

    assert _record(sample_config_file, 1, "CREATE TABLE orders (id INT)").exit_code == 0

    result = _invoke("status", "-c", sample_config_file)
    assert result.exit_code == 0
    assert "Yes" in _status_row(result.output, "History Populated")


def test_record_and_show(sample_config_file):
    assert _record(sample_config_file, 1, "CREATE TABLE orders (id INT)").exit_code == 0
    filtered = _record(sample_config_file, 2, "SAVEPOINT sp_1")

    assert "filtered out" in filtered.output

    result = _invoke("show", "-c", sample_config_file, "--as-json")

    assert result.exit_code == 0
    documents = [json.loads(line) for line in result.stdout.splitlines()]
    assert len(documents) == 1
    assert documents[0]["ddl"] == "CREATE TABLE orders (id INT)"
    assert documents[0]["position"] == {"pos": 1}


def test_record_rejects_bad_json(sample_config_file):
    result = _invoke(
        "record", "-c", sample_config_file,
        "--source", "not json", "--position", "{}", "--ddl", "CREATE TABLE t (id INT)",
    )

    assert result.exit_code == 2
    assert "invalid JSON" in result.output


def test_recover(sample_config_file):
    _record(sample_config_file, 1, "CREATE TABLE orders (id INT)")
    _record(sample_config_file, 2, "ALTER TABLE orders ADD COLUMN note TEXT")

    result = _invoke(
        "recover", "-c", sample_config_file,
        "--source", '{"server": "mysql-1"}',
        "--position", '{"pos": 1}',
        "--parser", "conftest:SimpleDdlParser",
    )

    assert result.exit_code == 0, result.output
    assert "inventory.orders" in result.output
    assert "Applied 1 of 2 records" in result.output


def test_load_parser_rejects_bad_reference():
    with pytest.raises(click.BadParameter):
        load_parser("no_colon_here")
    with pytest.raises(click.BadParameter):
        load_parser("json:dumps")
