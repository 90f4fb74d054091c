import pytest
from pydantic import ValidationError

from core.empty_escape.models import ParseRequest
from core.empty_escape.service import InvalidBase64Error, InvalidCsvError, process_csv


def test_simple_response_returns_records_only(b64):
    """
    response_level=simple では records と最小限の meta だけを返す。
    空行は records に含まれない。
    """
    req = ParseRequest(csv_b64=b64("a,b\n\n1,2\n"))

    resp = process_csv(req)

    assert resp.result.records == [["a", "b"], ["1", "2"]]
    assert resp.result.stats is None
    assert resp.result.issues == []
    assert resp.meta == {
        "version": "0.1.0",
        "engine": "empty_escape",
        "response_level_used": "simple",
    }


def test_standard_response_reports_structure(b64):
    """
    列数が揃っていないレコードは COLUMN_COUNT_MISMATCH として報告される。
    複数行にまたがるクォートフィールドは 1 レコードとして数える。
    """
    raw_csv = (
        "h1,h2\n"
        '"x\n'
        'y",1\n'
        "3\n"
    )
    req = ParseRequest(csv_b64=b64(raw_csv), response_level="standard")

    resp = process_csv(req)

    assert resp.result.records == [["h1", "h2"], ["x\ny", "1"], ["3"]]

    stats = resp.result.stats
    assert stats.rows == 3
    assert stats.columns_min == 1
    assert stats.columns_max == 2
    assert stats.columns_mode == 2
    assert stats.multiline_records == 1

    assert [(i.type, i.row) for i in resp.result.issues] == [("COLUMN_COUNT_MISMATCH", 3)]

    cfg = resp.meta["effective_config"]
    assert cfg["engine"] == "empty_escape"
    assert cfg["delimiter"] == ","
    assert "truncated" not in resp.meta


def test_blank_marker_is_serialised_as_null(b64):
    req = ParseRequest(csv_b64=b64("a,\n"), response_level="standard")

    resp = process_csv(req)

    assert resp.result.records == [["a", None]]
    assert resp.result.stats.blank_fields == 1
    assert resp.model_dump()["result"]["records"] == [["a", None]]


def test_escape_character_selects_native_engine(b64):
    req = ParseRequest(csv_b64=b64('a,"b\\"c"\n'), escape="\\")

    resp = process_csv(req)

    assert resp.meta["engine"] == "native"
    assert resp.result.records == [["a", 'b"c']]


def test_empty_escape_ignores_backslash(b64):
    req = ParseRequest(csv_b64=b64('"C:\\tmp\\",x\n'))

    resp = process_csv(req)

    assert resp.result.records == [["C:\\tmp\\", "x"]]


def test_custom_delimiter_and_enclosure(b64):
    req = ParseRequest(csv_b64=b64("'a;b';c\n"), delimiter=";", enclosure="'")

    resp = process_csv(req)

    assert resp.result.records == [["a;b", "c"]]


def test_max_rows_truncates_and_reports_in_debug(b64):
    req = ParseRequest(csv_b64=b64("1\n2\n3\n"), max_rows=2, response_level="debug")

    resp = process_csv(req)

    assert resp.result.records == [["1"], ["2"]]
    assert resp.meta["truncated"] is True
    assert resp.meta["response_level_used"] == "debug"

    req = ParseRequest(csv_b64=b64("1\n2\n3\n"), max_rows=3, response_level="debug")
    assert process_csv(req).meta["truncated"] is False


@pytest.mark.parametrize(
    "raw_csv, expected",
    [
        ("a\r\nb\r\n", "crlf"),
        ("a\nb\n", "lf"),
        ("a\rb\r", "cr"),
        ("a\nb\r\n", "mixed"),
        ("a,b", "none"),
    ],
)
def test_debug_reports_line_endings(b64, raw_csv, expected):
    req = ParseRequest(csv_b64=b64(raw_csv), response_level="debug")

    resp = process_csv(req)

    assert resp.meta["line_endings_detected"] == expected


def test_base64_with_whitespace_is_accepted(b64):
    encoded = b64("a,b\n")
    spaced = " ".join(encoded[i : i + 4] for i in range(0, len(encoded), 4))

    resp = process_csv(ParseRequest(csv_b64=spaced))

    assert resp.result.records == [["a", "b"]]


def test_invalid_base64_raises():
    with pytest.raises(InvalidBase64Error):
        process_csv(ParseRequest(csv_b64="not base64!!"))


def test_request_rejects_multi_character_controls():
    with pytest.raises(ValidationError):
        ParseRequest(csv_b64="", delimiter=";;")

    with pytest.raises(ValidationError):
        ParseRequest(csv_b64="", enclosure="")

    with pytest.raises(ValidationError):
        ParseRequest(csv_b64="", max_rows=-1)


def test_native_engine_error_is_reported_as_invalid_csv(b64):
    """
    native エンジン（csv.reader）はフィールド長の上限を超えると csv.Error を出す。
    それは InvalidCsvError として呼び出し側に返す。
    """
    raw_csv = '"' + "x" * 200000 + '"\n'

    with pytest.raises(InvalidCsvError):
        process_csv(ParseRequest(csv_b64=b64(raw_csv), escape="\\"))

    # 同じ入力でも escape なしパーサーなら読める
    resp = process_csv(ParseRequest(csv_b64=b64(raw_csv)))
    assert resp.result.records == [["x" * 200000]]


@pytest.mark.parametrize(
    "controls",
    [
        {"delimiter": '"'},
        {"delimiter": ";", "enclosure": ";"},
        {"delimiter": "\n"},
        {"delimiter": "\r"},
        {"delimiter": " "},
        {"enclosure": "\t"},
        {"enclosure": "\n"},
    ],
)
def test_request_rejects_conflicting_or_whitespace_controls(controls):
    with pytest.raises(ValidationError):
        ParseRequest(csv_b64="", **controls)


def test_request_accepts_tab_delimiter(b64):
    req = ParseRequest(csv_b64=b64("a\tb\n"), delimiter="\t")

    assert process_csv(req).result.records == [["a", "b"]]
