from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, List, Dict

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class ResponseLevel(str, Enum):
    """
    Response verbosity level.
    - simple   : records + minimal meta
    - standard : Includes issues + stats + effective_config
    - debug    : Full response for diagnostics (truncated flag, line endings, etc.)
    """

    simple = "simple"
    standard = "standard"
    debug = "debug"


class Issue(BaseModel):
    type: str
    row: Optional[int] = None
    column: Optional[int] = None
    severity: Literal["info", "warning", "error"] = "warning"
    description: str


class Stats(BaseModel):
    rows: int = 0
    columns_min: int = 0
    columns_max: int = 0
    columns_mode: int = 0
    multiline_records: int = 0
    blank_fields: int = 0
    delimiter: str = ","
    enclosure: str = '"'


class ParseResult(BaseModel):
    """
    records の空行マーカー（末尾の空フィールドなど）は None（JSON では null）。
    stats は response_level=simple のとき省略される。
    """

    records: List[List[Optional[str]]] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    stats: Optional[Stats] = None


class ParseResponse(BaseModel):
    result: ParseResult
    meta: Dict[str, Any]


# 空白類・改行は区切り文字/囲み文字に使えない（タブだけは区切り文字として許可）
_FORBIDDEN_CONTROLS = " \t\r\n\0\x0b"
_DELIMITER_ALLOWED_WHITESPACE = "\t"


class ParseRequest(BaseModel):
    """
    CSV Parse API (v0.1) リクエストモデル

    基本利用者は csv_b64 だけ渡せばよい想定。
      - escape が空文字（既定）のときは escape 文字を一切解釈しないパーサーで読む
      - escape に 1 文字を指定した場合は標準の csv.reader に委ねる
    """

    csv_b64: str

    delimiter: str = Field(default=",", min_length=1, max_length=1)
    enclosure: str = Field(default='"', min_length=1, max_length=1)
    escape: str = Field(default="", max_length=1)
    max_rows: int = Field(default=0, ge=0)  # 0 の場合は無制限

    response_level: ResponseLevel = Field(
        default=ResponseLevel.simple,
        description="Response verbosity: simple | standard | debug",
    )

    @model_validator(mode="after")
    def check_controls(self) -> "ParseRequest":
        if self.delimiter == self.enclosure:
            raise ValueError("delimiter and enclosure must differ")
        if self.delimiter in _FORBIDDEN_CONTROLS and self.delimiter not in _DELIMITER_ALLOWED_WHITESPACE:
            raise ValueError(f"delimiter must not be whitespace or a line break, got {self.delimiter!r}")
        if self.enclosure in _FORBIDDEN_CONTROLS:
            raise ValueError(f"enclosure must not be whitespace or a line break, got {self.enclosure!r}")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "csv_b64": "<Base64 encoded CSV string>",
                "delimiter": ",",
                "enclosure": '"',
                "escape": "",
                "response_level": "simple",
            }
        }
    )
