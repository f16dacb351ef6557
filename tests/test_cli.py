import csv

import pytest

from clmn.cli import (
    action_read_columns,
    action_roundtrip_test,
    first_difference,
    format_error,
    main,
    parse_column_list,
)
from clmn.errors import EncodingError


@pytest.fixture
def sample_csv(tmp_path):
    path = tmp_path / "sample.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["id", "name", "score"])
        for i in range(15):
            w.writerow([i, f"user_{i}", i * 1.5])
    return path


def test_parse_column_list():
    assert parse_column_list(" id, name ,,score") == ["id", "name", "score"]


def test_csv_to_custom_and_back(sample_csv, tmp_path, capsys):
    clmn_path = tmp_path / "sample.clmn"
    out_csv = tmp_path / "out.csv"

    assert main(["csv_to_custom", str(sample_csv), str(clmn_path)]) == 0
    assert main(["custom_to_csv", str(clmn_path), str(out_csv)]) == 0

    with open(sample_csv, newline="", encoding="utf-8") as f1, \
            open(out_csv, newline="", encoding="utf-8") as f2:
        assert list(csv.reader(f1)) == list(csv.reader(f2))
    assert "Wrote CSV" in capsys.readouterr().out


def test_read_preview(sample_csv, tmp_path, capsys):
    clmn_path = tmp_path / "sample.clmn"
    main(["csv_to_custom", str(sample_csv), str(clmn_path)])
    capsys.readouterr()

    assert main(["read", str(clmn_path), "--columns", "name,id", "--limit", "3"]) == 0
    out = capsys.readouterr().out
    assert "name | id" in out
    assert "user_2 | 2" in out
    assert "user_3" not in out
    assert "(12 more rows)" in out


def test_schema_command(sample_csv, tmp_path, capsys):
    clmn_path = tmp_path / "sample.clmn"
    main(["csv_to_custom", str(sample_csv), str(clmn_path)])
    capsys.readouterr()

    assert main(["schema", str(clmn_path)]) == 0
    out = capsys.readouterr().out
    assert "Rows: 15" in out
    assert "score: FLOAT64" in out


def test_unknown_column_exit_status(sample_csv, tmp_path, capsys):
    clmn_path = tmp_path / "sample.clmn"
    main(["csv_to_custom", str(sample_csv), str(clmn_path)])

    assert main(["read", str(clmn_path), "--columns", "email"]) == 1
    err = capsys.readouterr().err
    assert "'email' not found" in err
    assert "id, name, score" in err


def test_not_a_clmn_file(sample_csv, capsys):
    assert main(["schema", str(sample_csv)]) == 1
    assert "magic" in capsys.readouterr().err


def test_missing_input(tmp_path, capsys):
    assert main(["csv_to_custom", str(tmp_path / "nope.csv"), str(tmp_path / "x.clmn")]) == 1


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "csv_to_custom" in capsys.readouterr().out


def test_bad_compression_level_exit_status(sample_csv, tmp_path, capsys):
    clmn_path = tmp_path / "sample.clmn"
    assert main(["csv_to_custom", str(sample_csv), str(clmn_path), "--level", "12"]) == 1
    assert "Compression level" in capsys.readouterr().err
    assert not clmn_path.exists()


def test_header_without_columns_exit_status(tmp_path, capsys):
    path = tmp_path / "blank.csv"
    path.write_text("\n\n", encoding="utf-8")
    assert main(["csv_to_custom", str(path), str(tmp_path / "x.clmn")]) == 1
    assert "no columns" in capsys.readouterr().err


def answer(monkeypatch, *replies):
    replies = iter(replies)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def test_menu_read_reports_missing_column(sample_csv, tmp_path, monkeypatch, capsys):
    clmn_path = tmp_path / "sample.clmn"
    main(["csv_to_custom", str(sample_csv), str(clmn_path)])
    capsys.readouterr()

    answer(monkeypatch, str(clmn_path), "id,email")
    action_read_columns()
    out = capsys.readouterr().out
    assert "no column named 'email'" in out
    assert "this file has: id, name, score" in out


def test_format_error_includes_context():
    e = EncodingError("Value 'x' is not a valid INT32", column="id", row=3)
    assert format_error(e) == "EncodingError: Value 'x' is not a valid INT32 in column 'id' at row 3"
    assert format_error(OSError("disk full")) == "disk full"


def test_menu_roundtrip_reports_match(sample_csv, tmp_path, monkeypatch, capsys):
    answer(monkeypatch, str(sample_csv), str(tmp_path / "rt.clmn"), str(tmp_path / "rt.csv"))
    action_roundtrip_test()
    assert "Files match record for record" in capsys.readouterr().out


def test_first_difference(tmp_path):
    a = tmp_path / "a.csv"
    b = tmp_path / "b.csv"
    a.write_text("x\n1\n2\n", encoding="utf-8")
    b.write_text("x\n1\n2.0\n", encoding="utf-8")
    assert first_difference(a, b) == 2
    assert first_difference(a, a) is None
