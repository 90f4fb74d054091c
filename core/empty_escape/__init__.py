# core/empty_escape/__init__.py

"""
CSV Parse API core package (escape 文字なしの CSV パーサー).

- source.py : LineSource プロトコルとテキストストリーム用アダプタ
- parser.py : レコード/フィールド抽出（クォート・複数行・"" の畳み込み）
- models.py : Pydantic モデル定義
- service.py: メイン処理（Base64 デコード + 解析 + 構造集計）
"""

from .parser import BLANK_LINE, InvalidSourceError, parse
from .source import LineSource, LineState, TextStreamSource

__all__ = [
    "BLANK_LINE",
    "InvalidSourceError",
    "LineSource",
    "LineState",
    "TextStreamSource",
    "parse",
]
