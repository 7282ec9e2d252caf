"""
Tests for the command line interface.
"""
import json

import pytest
from typer.testing import CliRunner

from ..app import app

runner = CliRunner()


@pytest.fixture
def statement_file(tmp_path, commbank_pages):
    path = tmp_path / "jan.txt"
    path.write_text("\f".join(commbank_pages))
    return path


class TestParseCommand:

    def test_parse_to_file(self, statement_file, tmp_path):
        out = tmp_path / "out.json"
        result = runner.invoke(app, ["parse", str(statement_file), "--out", str(out)])
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert data["metadata"]["filename"] == "jan.txt"
        assert len(data["transactions"]) == 5

    def test_parse_csv(self, statement_file, tmp_path):
        out = tmp_path / "out.csv"
        result = runner.invoke(app, ["parse", str(statement_file), "--format", "csv", "--out", str(out)])
        assert result.exit_code == 0
        assert "date,description,normalized_description" in out.read_text()

    def test_parse_with_prior(self, statement_file, tmp_path):
        first = tmp_path / "first.json"
        second = tmp_path / "second.json"
        runner.invoke(app, ["parse", str(statement_file), "--out", str(first)])
        result = runner.invoke(app, ["parse", str(statement_file), "--prior", str(first), "--out", str(second)])
        assert result.exit_code == 0
        data = json.loads(second.read_text())
        assert all(t["is_duplicate"] for t in data["transactions"])

    def test_unknown_bank_fails(self, tmp_path):
        path = tmp_path / "letter.txt"
        path.write_text("Dear customer,\nThanks.")
        result = runner.invoke(app, ["parse", str(path)])
        assert result.exit_code == 1

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["parse", str(tmp_path / "nope.pdf")])
        assert result.exit_code == 1

    def test_bad_format(self, statement_file):
        result = runner.invoke(app, ["parse", str(statement_file), "--format", "xml"])
        assert result.exit_code == 1


class TestOtherCommands:

    def test_detect(self, statement_file):
        result = runner.invoke(app, ["detect", str(statement_file)])
        assert result.exit_code == 0
        assert "commbank" in result.output

    def test_detect_unknown(self, tmp_path):
        path = tmp_path / "letter.txt"
        path.write_text("Dear customer")
        assert runner.invoke(app, ["detect", str(path)]).exit_code == 1

    def test_banks(self):
        result = runner.invoke(app, ["banks"])
        assert result.exit_code == 0
        for bank_id in ["commbank", "nab", "westpac", "anz", "ing", "generic"]:
            assert bank_id in result.output

    def test_validate(self, statement_file, tmp_path):
        out = tmp_path / "out.json"
        runner.invoke(app, ["parse", str(statement_file), "--out", str(out)])
        result = runner.invoke(app, ["validate", str(out)])
        assert result.exit_code == 0
        assert "valid" in result.output

    def test_validate_inverted_period(self, statement_file, tmp_path):
        out = tmp_path / "out.json"
        runner.invoke(app, ["parse", str(statement_file), "--out", str(out)])
        data = json.loads(out.read_text())
        data["metadata"]["statement_period_start"] = "2024-02-01"
        out.write_text(json.dumps(data))
        assert runner.invoke(app, ["validate", str(out)]).exit_code == 1

    def test_validate_garbage(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert runner.invoke(app, ["validate", str(path)]).exit_code == 1
