from __future__ import annotations

import csv
import io
from enum import Enum
from typing import Iterator, List, Protocol, TextIO, Tuple, Union, runtime_checkable


class LineState(Enum):
    """行カーソル用の番兵値（どんな文字列とも衝突しない）"""

    END_OF_LINE = "end_of_line"
    END_OF_STREAM = "end_of_stream"


RawLine = Union[str, LineState]


@runtime_checkable
class LineSource(Protocol):
    """パーサーが要求する行ソースの能力

    - get_csv_control : (delimiter, enclosure, escape) を返す。escape は無視される
    - read_line       : 改行コード込みの物理行 1 行、または END_OF_STREAM
    - rewind          : 先頭に戻す
    - reset_mode      : ネイティブの CSV 分割モードを解除する
    """

    def get_csv_control(self) -> Tuple[str, str, str]: ...

    def read_line(self) -> RawLine: ...

    def rewind(self) -> None: ...

    def reset_mode(self) -> None: ...


def _single_char(name: str, value: str) -> str:
    if not isinstance(value, str) or len(value) != 1:
        raise ValueError(f"{name} must be a single character, got {value!r}")
    return value


class TextStreamSource:
    """シーク可能なテキストストリームを LineSource として扱うアダプタ

    ストリームは改行コードを変換しないこと（open(..., newline="") / StringIO(newline="")）。
    csv_mode が有効な間は、イテレートすると標準ライブラリの csv.reader の行を返す。
    """

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = ",",
        enclosure: str = '"',
        escape: str = "\\",
    ) -> None:
        self.stream = stream
        self.csv_mode = True
        self.set_csv_control(delimiter, enclosure, escape)

    @classmethod
    def from_text(cls, text: str, **control: str) -> "TextStreamSource":
        return cls(io.StringIO(text, newline=""), **control)

    def set_csv_control(self, delimiter: str = ",", enclosure: str = '"', escape: str = "\\") -> None:
        self.delimiter = _single_char("delimiter", delimiter)
        self.enclosure = _single_char("enclosure", enclosure)
        # 空文字は「エスケープなし」
        if escape != "":
            _single_char("escape", escape)
        self.escape = escape

    def get_csv_control(self) -> Tuple[str, str, str]:
        return self.delimiter, self.enclosure, self.escape

    def read_line(self) -> RawLine:
        line = self.stream.readline()
        if line == "":
            return LineState.END_OF_STREAM
        return line

    def rewind(self) -> None:
        self.stream.seek(0)

    def reset_mode(self) -> None:
        self.csv_mode = False

    def __iter__(self) -> Iterator[Union[str, List[str]]]:
        self.rewind()
        if not self.csv_mode:
            yield from iter(self.stream.readline, "")
            return

        reader = csv.reader(
            self.stream,
            delimiter=self.delimiter,
            quotechar=self.enclosure,
            escapechar=self.escape or None,
            doublequote=True,
            skipinitialspace=False,
        )
        for row in reader:
            # SKIP_EMPTY 相当: 空行は返さない
            if row:
                yield row
