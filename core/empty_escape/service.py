from __future__ import annotations

import base64
import csv
import logging
import statistics
from dataclasses import dataclass, asdict
from itertools import islice
from typing import Iterator, List, Tuple, Dict, Any

from .models import (
    ParseRequest,
    ParseResult,
    ParseResponse,
    Issue,
    Stats,
    ResponseLevel,
)
from .parser import Record, parse
from .source import TextStreamSource

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


class InvalidBase64Error(Exception):
    """Base64 デコード失敗時に投げる独自例外"""

    pass


class InvalidCsvError(Exception):
    """csv.reader（native エンジン）が解析に失敗したときに投げる独自例外"""

    pass


@dataclass
class EffectiveConfig:
    """実際に解析に用いる設定（リクエスト値の解決後）"""

    delimiter: str
    enclosure: str
    escape: str
    engine: str  # "empty_escape" / "native"
    max_rows: int


# ---------------------------------------------------------------------------
# Base64 / テキストユーティリティ
# ---------------------------------------------------------------------------


def _decode_base64_to_text(csv_b64: str) -> str:
    """Base64 -> UTF-8 テキストに変換

    - 先に空白類（スペース・改行・タブなど）をすべて削除
    - そのうえで validate=True で厳密に Base64 を検証
    """
    try:
        compact = "".join(csv_b64.split())
        raw = base64.b64decode(compact, validate=True)
        return raw.decode("utf-8")
    except Exception as exc:  # noqa: BLE001
        raise InvalidBase64Error("csv_b64 is not valid Base64 UTF-8 text") from exc


def _detect_line_endings(text: str) -> str:
    """元テキストの改行コード種別を返す（テキストは変更しない）

    Returns:
        'crlf' / 'lf' / 'cr' / 'mixed' / 'none'
    """
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    cr = text.count("\r") - crlf
    found = [name for name, n in (("crlf", crlf), ("lf", lf), ("cr", cr)) if n]
    if not found:
        return "none"
    if len(found) > 1:
        return "mixed"
    return found[0]


# ---------------------------------------------------------------------------
# 設定解決 / レコード読み出し
# ---------------------------------------------------------------------------


def _resolve_effective_config(request: ParseRequest) -> EffectiveConfig:
    """escape の有無からエンジンを決める。

    - escape == ""  : empty_escape（escape 文字を解釈しないパーサー）
    - escape == 1 文字: native（csv.reader に escapechar として渡す）
    """
    engine = "empty_escape" if request.escape == "" else "native"
    return EffectiveConfig(
        delimiter=request.delimiter,
        enclosure=request.enclosure,
        escape=request.escape,
        engine=engine,
        max_rows=max(0, int(request.max_rows or 0)),
    )


def _iter_records(text: str, cfg: EffectiveConfig) -> Iterator[Record]:
    source = TextStreamSource.from_text(
        text,
        delimiter=cfg.delimiter,
        enclosure=cfg.enclosure,
        escape=cfg.escape,
    )
    if cfg.engine == "empty_escape":
        return parse(source)
    return (tuple(row) for row in source)


def _take_records(records: Iterator[Record], max_rows: int) -> Tuple[List[Record], bool]:
    """max_rows 件まで遅延的に取り出す。1 件余分に覗いて打ち切りの有無を判定する。"""
    if max_rows <= 0:
        return list(records), False

    taken = list(islice(records, max_rows + 1))
    if len(taken) > max_rows:
        return taken[:max_rows], True
    return taken, False


# ---------------------------------------------------------------------------
# 構造解析 / Stats
# ---------------------------------------------------------------------------


def _analyze_structure(records: List[Record], cfg: EffectiveConfig) -> Tuple[Stats, List[Issue]]:
    """列数のばらつき・複数行レコード・空行マーカーを集計する。"""
    issues: List[Issue] = []

    if not records:
        return Stats(delimiter=cfg.delimiter, enclosure=cfg.enclosure), issues

    col_counts = [len(r) for r in records]
    try:
        columns_mode = int(statistics.mode(col_counts))
    except statistics.StatisticsError:
        columns_mode = int(round(statistics.mean(col_counts)))

    multiline = 0
    blank_fields = 0
    for record in records:
        if any(f is not None and ("\n" in f or "\r" in f) for f in record):
            multiline += 1
        blank_fields += sum(1 for f in record if f is None)

    for i, col_count in enumerate(col_counts, start=1):
        if col_count != columns_mode:
            issues.append(
                Issue(
                    type="COLUMN_COUNT_MISMATCH",
                    row=i,
                    severity="warning",
                    description=f"Record has {col_count} fields (expected ~{columns_mode}).",
                )
            )

    stats = Stats(
        rows=len(records),
        columns_min=min(col_counts),
        columns_max=max(col_counts),
        columns_mode=columns_mode,
        multiline_records=multiline,
        blank_fields=blank_fields,
        delimiter=cfg.delimiter,
        enclosure=cfg.enclosure,
    )
    return stats, issues


# ---------------------------------------------------------------------------
# response_level による間引き
# ---------------------------------------------------------------------------


def _minimize_response(
    level: ResponseLevel,
    records: List[Record],
    issues: List[Issue],
    stats: Stats,
    meta_full: Dict[str, Any],
) -> ParseResponse:
    """
    トップ構造 {result, meta} は維持しつつ、
    response_level に応じて result/meta の中身を最小化する。
    """
    rows = [list(r) for r in records]

    meta_simple: Dict[str, Any] = {
        "version": meta_full.get("version"),
        "engine": meta_full.get("engine"),
        "response_level_used": level.value,
    }

    if level == ResponseLevel.simple:
        return ParseResponse(result=ParseResult(records=rows), meta=meta_simple)

    if level == ResponseLevel.standard:
        meta_standard: Dict[str, Any] = dict(meta_simple)
        meta_standard["effective_config"] = meta_full["effective_config"]
        result = ParseResult(records=rows, issues=issues, stats=stats)
        return ParseResponse(result=result, meta=meta_standard)

    # debug: meta_full をそのまま返す
    meta_debug = dict(meta_full)
    meta_debug["response_level_used"] = level.value
    result = ParseResult(records=rows, issues=issues, stats=stats)
    return ParseResponse(result=result, meta=meta_debug)


# ---------------------------------------------------------------------------
# API エントリーポイント
# ---------------------------------------------------------------------------


def process_csv(request: ParseRequest) -> ParseResponse:
    """CSV Parse API のメイン処理"""

    # 1) Base64 -> UTF-8（改行コードは正規化しない。パーサーが物理行をそのまま読む）
    text = _decode_base64_to_text(request.csv_b64)

    # 2) エンジン・設定を決定
    cfg = _resolve_effective_config(request)

    # 3) レコードを遅延的に読み出し、max_rows で打ち切る
    try:
        records, truncated = _take_records(_iter_records(text, cfg), cfg.max_rows)
    except csv.Error as exc:
        raise InvalidCsvError(f"CSV could not be parsed: {exc}") from exc
    logger.debug("engine=%s records=%d truncated=%s", cfg.engine, len(records), truncated)

    # 4) 構造解析
    stats, issues = _analyze_structure(records, cfg)

    meta_full: Dict[str, Any] = {
        "version": API_VERSION,
        "engine": cfg.engine,
        "effective_config": asdict(cfg),
        "truncated": truncated,
        "line_endings_detected": _detect_line_endings(text),
    }

    # 5) response_level に応じて最終レスポンスを生成
    return _minimize_response(
        level=request.response_level,
        records=records,
        issues=issues,
        stats=stats,
        meta_full=meta_full,
    )
