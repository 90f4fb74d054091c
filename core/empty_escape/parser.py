from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .source import LineSource, LineState, RawLine

logger = logging.getLogger(__name__)

# None は「空行マーカー」。空文字 "" は長さ 0 の正当なフィールド。
Field = Optional[str]
Record = Tuple[Field, ...]

BLANK_LINE: Field = None
LINE_BREAKS = ("", "\r\n", "\n", "\r")
WHITESPACE = " \t\0\x0b"


class InvalidSourceError(TypeError):
    """parse() に LineSource の能力を持たないオブジェクトが渡された"""

    pass


class FieldKind(Enum):
    UNQUOTED = "unquoted"
    QUOTED = "quoted"


def _is_field_break(line: RawLine) -> bool:
    return isinstance(line, LineState) or line in LINE_BREAKS


def _trim_mask(delimiter: str, enclosure: str) -> str:
    # delimiter / enclosure が空白文字でも取り除かないようにする
    return "".join(c for c in WHITESPACE if c not in (delimiter, enclosure))


@dataclass
class ParseCursor:
    """parse() 呼び出しごとの状態（呼び出し間で共有しない）"""

    delimiter: str
    enclosure: str
    trim_mask: str
    line: RawLine = LineState.END_OF_LINE
    exhausted: bool = False
    lines_read: int = 0


class FieldExtractor:
    """
    物理行からフィールドを 1 つずつ取り出し、レコードを組み立てる。

    - 非クォートフィールド: 先頭の空白を除去、行末のときだけ改行を除去
    - クォートフィールド: 複数行にまたがってよい、"" は " 1 文字に置換
    - 閉じクォート直後のゴミは非クォートとして連結する（エラーにしない）
    """

    def __init__(self, source: LineSource, cursor: ParseCursor) -> None:
        self.source = source
        self.cursor = cursor

    def _next_line(self) -> RawLine:
        line = self.source.read_line()
        if line is LineState.END_OF_STREAM:
            self.cursor.exhausted = True
        else:
            self.cursor.lines_read += 1
        return line

    def _lookahead(self) -> FieldKind:
        cur = self.cursor
        if isinstance(cur.line, str):
            cur.line = cur.line.lstrip(cur.trim_mask)
            if cur.line[:1] == cur.enclosure:
                return FieldKind.QUOTED
        return FieldKind.UNQUOTED

    def extract_record(self) -> Record:
        cur = self.cursor
        fields: List[Field] = []
        cur.line = self._next_line()
        while True:
            if self._lookahead() is FieldKind.QUOTED:
                fields.append(self._extract_enclosed())
            else:
                fields.append(self._extract_unquoted())
            if cur.line is LineState.END_OF_LINE:
                return tuple(fields)

    def _extract_unquoted(self) -> Field:
        cur = self.cursor
        line = cur.line
        if _is_field_break(line):
            cur.line = LineState.END_OF_LINE
            return BLANK_LINE

        content, sep, rest = line.partition(cur.delimiter)
        if not sep:
            cur.line = LineState.END_OF_LINE
            return content.rstrip("\r\n")

        cur.line = rest
        return content

    def _extract_enclosed(self) -> str:
        cur = self.cursor
        line = cur.line
        if line[:1] == cur.enclosure:
            line = line[1:]

        parts: List[str] = []
        while True:
            # 閉じクォートが見つかるまで物理行を読み進める
            while True:
                chunk, sep, rest = line.partition(cur.enclosure)
                parts.append(chunk)
                if sep:
                    line = rest
                    break
                line = self._next_line()
                if line is LineState.END_OF_STREAM:
                    # 閉じられないままストリーム終端: 溜まった内容をそのまま返す
                    cur.line = LineState.END_OF_LINE
                    return "".join(parts)

            if line in LINE_BREAKS:
                cur.line = LineState.END_OF_LINE
                return "".join(parts).rstrip("\r\n")

            char = line[0]
            if char == cur.delimiter:
                cur.line = line[1:]
                return "".join(parts)

            if char == cur.enclosure:
                parts.append(cur.enclosure)
                line = line[1:]
                continue

            cur.line = line
            return "".join(parts) + self._extract_unquoted()


def _filter_source(source: object) -> LineSource:
    if isinstance(source, LineSource):
        return source

    raise InvalidSourceError(
        "parse() expects an object providing read_line, get_csv_control, "
        f"rewind and reset_mode, {type(source).__name__} given"
    )


def _iter_records(extractor: FieldExtractor) -> Iterator[Record]:
    cursor = extractor.cursor
    emitted = 0
    while not cursor.exhausted:
        record = extractor.extract_record()
        if record == (BLANK_LINE,):
            continue
        emitted += 1
        yield record

    logger.debug("parsed %d record(s) from %d physical line(s)", emitted, cursor.lines_read)


def parse(source: LineSource) -> Iterator[Record]:
    """LineSource を escape 文字なしで解析し、レコードを遅延的に返す

    source の検査・巻き戻しは呼び出し時点で行う（最初の next() を待たない）。
    空行だけのレコードは返さない。
    """
    document = _filter_source(source)
    delimiter, enclosure, _ = document.get_csv_control()
    document.reset_mode()
    document.rewind()

    cursor = ParseCursor(
        delimiter=delimiter,
        enclosure=enclosure,
        trim_mask=_trim_mask(delimiter, enclosure),
    )
    return _iter_records(FieldExtractor(document, cursor))
