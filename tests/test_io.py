from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import Workbook

from aerator_report.classify import cell_text
from aerator_report.io import InputError, load_records, load_table, records_from_frame, write_json


def test_load_table_csv_uses_sniffing_and_string_dtype(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text("a;b\n1;2\n", encoding="utf-8")
    expected = pd.DataFrame({"a": ["1"], "b": ["2"]})

    calls: list[dict[str, object]] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append({"path": path, **kwargs})
        return expected

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    result = load_table(csv_path)

    assert result.equals(expected)
    assert len(calls) == 1
    assert calls[0]["path"] == csv_path
    assert calls[0]["dtype"] == "string"
    assert calls[0]["sep"] == ";"
    assert calls[0]["engine"] == "c"
    assert calls[0]["encoding"] == "utf-8-sig"
    assert calls[0]["keep_default_na"] is False


def test_load_table_csv_with_delimiter_uses_explicit_sep_and_c_engine(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text("a|b\n1|2\n", encoding="utf-8")
    calls: list[dict[str, object]] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append(kwargs)
        return pd.DataFrame({"a": ["1"]})

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    load_table(csv_path, delimiter="|")

    assert calls[0]["sep"] == "|"
    assert calls[0]["engine"] == "c"


def test_load_table_csv_retries_encoding_on_unicode_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_bytes(b"x")
    expected = pd.DataFrame({"a": ["1"]})
    encodings: list[str] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        del path
        encoding = kwargs.get("encoding")
        assert isinstance(encoding, str)
        encodings.append(encoding)
        if encoding in {"utf-8-sig", "utf-8"}:
            raise UnicodeDecodeError("utf-8", b"x", 0, 1, "bad")
        return expected

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    result = load_table(csv_path)

    assert result.equals(expected)
    assert encodings == ["utf-8-sig", "utf-8", "latin-1"]


def test_load_table_csv_wraps_parser_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    csv_path = tmp_path / "broken.csv"
    csv_path.write_text('not,a,valid"\n', encoding="utf-8")

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        del path, kwargs
        raise pd.errors.ParserError("malformed csv")

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    with pytest.raises(InputError, match="decode or parse failed"):
        load_table(csv_path)


def test_load_table_xlsx_uses_openpyxl_first_sheet(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    xlsx_path = tmp_path / "data.xlsx"
    xlsx_path.write_bytes(b"x")
    calls: list[dict[str, object]] = []

    def _fake_read_excel(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append({"path": path, **kwargs})
        return pd.DataFrame({"a": ["1"]})

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    load_table(xlsx_path)

    assert calls[0]["engine"] == "openpyxl"
    assert calls[0]["sheet_name"] == 0


def test_load_table_xls_missing_xlrd_raises_friendly_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    xls_path = tmp_path / "legacy.xls"
    xls_path.write_bytes(b"x")

    def _fake_read_excel(path: Path, **kwargs: object) -> pd.DataFrame:
        del path, kwargs
        raise ImportError("No module named xlrd")

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    with pytest.raises(InputError, match="xlrd"):
        load_table(xls_path)


def test_load_table_rejects_missing_directory_and_unknown_suffix(tmp_path: Path) -> None:
    input_dir = tmp_path / "fake.csv"
    input_dir.mkdir()
    odd = tmp_path / "data.json"
    odd.write_text("{}", encoding="utf-8")

    with pytest.raises(InputError, match="not a file"):
        load_table(input_dir)
    with pytest.raises(InputError, match="not found"):
        load_table(tmp_path / "nope.csv")
    with pytest.raises(InputError, match="Unsupported file type"):
        load_table(odd)


def test_corrupt_workbook_is_an_input_error(tmp_path: Path) -> None:
    xlsx_path = tmp_path / "corrupt.xlsx"
    xlsx_path.write_bytes(b"this is not a zip archive")

    with pytest.raises(InputError, match="Could not read workbook"):
        load_table(xlsx_path)


def test_load_table_csv_bom_and_latin1(tmp_path: Path) -> None:
    bom = tmp_path / "bom.csv"
    bom.write_text("Unit,Kitchen\n1,x\n", encoding="utf-8-sig")
    latin = tmp_path / "latin1.csv"
    latin.write_bytes("Unit,Notes\n1,Réparé\n".encode("latin-1"))

    assert list(load_table(bom).columns) == ["Unit", "Kitchen"]
    assert load_table(latin).iloc[0]["Notes"] == "Réparé"



def test_load_records_single_column_csv_keeps_header(tmp_path: Path) -> None:
    csv_path = tmp_path / "units.csv"
    csv_path.write_text("Unit\n101\n102\n", encoding="utf-8")

    rows = load_records(csv_path)

    assert rows == [{"Unit": "101"}, {"Unit": "102"}]


def test_load_records_sniffs_tab_and_semicolon_delimiters(tmp_path: Path) -> None:
    tabbed = tmp_path / "tabbed.csv"
    tabbed.write_text("Unit\tKitchen Faucet\n101\tx\n", encoding="utf-8")
    semi = tmp_path / "semi.csv"
    semi.write_text("Unit;Shower Head\n7;1.75 gpm\n", encoding="utf-8")

    assert load_records(tabbed) == [{"Unit": "101", "Kitchen Faucet": "x"}]
    assert load_records(semi) == [{"Unit": "7", "Shower Head": "1.75 gpm"}]


# ── Raw rows ─────────────────────────────────────────────────────


def test_records_from_frame_drops_unnamed_columns_and_blank_rows() -> None:
    df = pd.DataFrame(
        {
            " Unit ": ["101", pd.NA, "102"],
            "Unnamed: 1": ["x", "y", "z"],
            "Kitchen": ["x", "", pd.NA],
        }
    )

    rows = records_from_frame(df)

    assert rows == [{"Unit": "101", "Kitchen": "x"}, {"Unit": "102", "Kitchen": ""}]


def test_records_from_frame_requires_header_and_rows() -> None:
    with pytest.raises(InputError, match="no header"):
        records_from_frame(pd.DataFrame({"Unnamed: 0": ["x"]}))
    with pytest.raises(InputError, match="0 rows"):
        records_from_frame(pd.DataFrame({"Unit": pd.Series([], dtype="string")}))


def test_load_records_csv_keeps_na_like_text(tmp_path: Path) -> None:
    csv_path = tmp_path / "units.csv"
    csv_path.write_text("Unit,Kitchen Faucet\n101,x\n\nNA,\n", encoding="utf-8")

    rows = load_records(csv_path)

    assert rows == [{"Unit": "101", "Kitchen Faucet": "x"}, {"Unit": "NA", "Kitchen Faucet": ""}]


def test_load_records_header_only_csv_is_input_error(tmp_path: Path) -> None:
    header_only = tmp_path / "header.csv"
    header_only.write_text("Unit,Kitchen\n", encoding="utf-8")

    with pytest.raises(InputError, match="0 rows"):
        load_records(header_only)


def test_load_records_xlsx_keeps_numbers(tmp_path: Path) -> None:
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.append(["Unit", "Kitchen Faucet"])
    ws.append([101, "x"])
    ws.append([None, None])
    ws.append(["Total", 1])
    path = tmp_path / "units.xlsx"
    wb.save(path)

    rows = load_records(path)

    assert len(rows) == 2
    assert cell_text(rows[0]["Unit"]) == "101"
    assert rows[0]["Kitchen Faucet"] == "x"
    assert rows[1]["Unit"] == "Total"


# ── Writing ──────────────────────────────────────────────────────


def test_write_json_is_atomic_and_deterministic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "artifact.json"
    payload = {"b": 1, "a": datetime(2024, 1, 2, 3, 4, 5), "path": Path("foo/bar")}

    out = write_json(path, payload)

    assert out == path
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert '"a": "2024-01-02T03:04:05"' in text
    assert text.index('"a"') < text.index('"b"') < text.index('"path"')
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_json_raises_on_unknown_type(tmp_path: Path) -> None:
    class Unknown:
        pass

    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "artifact.json", {"x": Unknown()})
