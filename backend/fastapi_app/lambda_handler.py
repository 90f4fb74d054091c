from __future__ import annotations

import json
from typing import Dict, Optional

from mangum import Mangum

from backend.fastapi_app.main import app

# base path（stage）ごとの Mangum インスタンス
_ADAPTERS: Dict[Optional[str], Mangum] = {}


def _safe_get(d, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _resolve_base_path(event) -> Optional[str]:
    """/dev や /prod を剥がすための base path。$default ステージでは None。"""
    stage = _safe_get(event, "requestContext", "stage", default=None)
    if not stage or stage == "$default":
        return None
    return f"/{stage}"


def _diag(event) -> Dict[str, Optional[str]]:
    return {
        "diag": "csv_parse_request",
        "stage": _safe_get(event, "requestContext", "stage", default=None),
        "method": _safe_get(event, "requestContext", "http", "method", default=None),
        "rawPath": _safe_get(event, "rawPath", default=None),
        "requestContext.http.path": _safe_get(event, "requestContext", "http", "path", default=None),
    }


def handler(event, context):
    print(json.dumps(_diag(event), ensure_ascii=False))

    base_path = _resolve_base_path(event)
    asgi = _ADAPTERS.get(base_path)
    if asgi is None:
        asgi = Mangum(app, api_gateway_base_path=base_path)
        _ADAPTERS[base_path] = asgi
    return asgi(event, context)
