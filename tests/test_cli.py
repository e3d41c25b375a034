"""
CLI tests: argument parsing and commands against a temp CSV.
"""
import argparse

import pytest

from ipdr.cli import main, parse_contains, parse_eq, parse_range
from ipdr.data.schemas import ConstraintOp

CSV = (
    "Calling Number,Source IP,Session Start\n"
    "919800000001,10.0.0.5,2024-01-01 08:15:00\n"
    "919800000002,10.0.0.7,2024-01-01 09:00:00\n"
)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "records.csv"
    path.write_text(CSV)
    return path


class TestConstraintArgs:

    def test_eq(self):
        c = parse_eq("src_ip=10.0.0.5")
        assert (c.field, c.op, c.value) == ("src_ip", ConstraintOp.EQ, "10.0.0.5")

    def test_contains(self):
        assert parse_contains("msisdn=9198").op == ConstraintOp.CONTAINS

    def test_range_open_ended(self):
        c = parse_range("start_time=2024-01-01..")
        assert (c.low, c.high) == ("2024-01-01", None)

    @pytest.mark.parametrize("text", ["novalue", "=x"])
    def test_bad_pair(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_eq(text)

    def test_range_needs_dots(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_range("data_up=5")


class TestCommands:

    def test_summary(self, csv_path, capsys):
        assert main(["summary", str(csv_path)]) == 0
        out = capsys.readouterr().out
        assert "Records:        2" in out

    def test_filter(self, csv_path, capsys):
        assert main(["filter", str(csv_path), "--eq", "Source IP=10.0.0.7"]) == 0
        out = capsys.readouterr().out
        assert "Matches: 1 of 2" in out
        assert "919800000002" in out

    def test_invalid_range_exit_code(self, csv_path, capsys):
        code = main(["filter", str(csv_path), "--range", "start_time=2024-02-01..2024-01-01"])
        assert code == 1
        assert "Error" in capsys.readouterr().err

    def test_graph_json(self, csv_path, capsys):
        assert main(["graph", str(csv_path), "--json"]) == 0
        out = capsys.readouterr().out
        assert '"ip:10.0.0.5"' in out

    def test_export(self, csv_path, tmp_path):
        out = tmp_path / "case.xlsx"
        assert main(["export", str(csv_path), "--output", str(out)]) == 0
        assert out.exists()

    def test_missing_file(self, tmp_path):
        assert main(["summary", str(tmp_path / "missing.csv")]) == 1
