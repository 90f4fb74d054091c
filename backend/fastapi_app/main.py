from __future__ import annotations

import sys
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# ============================================================
# プロジェクトルートを sys.path に追加
# （Lambda / uvicorn どちらでも core パッケージを解決できるように）
# ============================================================
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from core.empty_escape.models import ParseRequest  # noqa: E402
from core.empty_escape.service import (  # noqa: E402
    API_VERSION,
    InvalidBase64Error,
    InvalidCsvError,
    process_csv,
)

# ============================================================
# API Gateway 側で /csv をプレフィックスとしてルーティングしているため、
# FastAPI には root_path="/csv" を指定し、ルート定義は /v0/... にする
# ============================================================
app = FastAPI(
    title="CSV Parse API",
    version=API_VERSION,
    description="CSV parser that ignores the escape character (empty escape)",
    root_path="/csv",
)


@app.exception_handler(InvalidBase64Error)
async def invalid_base64_handler(_: Request, exc: InvalidBase64Error) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "INVALID_BASE64",
                "message": str(exc),
            },
            "meta": {
                "version": API_VERSION,
            },
        },
    )


@app.exception_handler(InvalidCsvError)
async def invalid_csv_handler(_: Request, exc: InvalidCsvError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "INVALID_CSV",
                "message": str(exc),
            },
            "meta": {
                "version": API_VERSION,
            },
        },
    )


@app.post("/v0/parse")
async def csv_parse_endpoint(payload: ParseRequest):
    response = process_csv(payload)
    return response.model_dump()
