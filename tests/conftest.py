import base64
import sys
from pathlib import Path

import pytest

# tests/ から見て 1 つ上 = プロジェクトルート
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# プロジェクトルートを sys.path の先頭に追加
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from core.empty_escape.parser import parse  # noqa: E402
from core.empty_escape.source import TextStreamSource  # noqa: E402


@pytest.fixture
def parse_text():
    """テキストを TextStreamSource 経由で解析し、レコードのリストを返す"""

    def _parse(text: str, **control: str):
        return list(parse(TextStreamSource.from_text(text, **control)))

    return _parse


@pytest.fixture
def b64():
    """テスト用 Base64 ヘルパー"""

    def _b64(s: str) -> str:
        return base64.b64encode(s.encode("utf-8")).decode("ascii")

    return _b64
