"""Admin API 鉴权: 固定 token, 通过 Authorization: Bearer 或 X-Birdass-Token 传入"""

from __future__ import annotations

import hmac
from typing import Callable

from fastapi import HTTPException, Request

TOKEN_HEADER = "X-Birdass-Token"


def extract_token(request: Request) -> str | None:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.headers.get(TOKEN_HEADER, "").strip() or None


def admin_auth(expected_token: str) -> Callable[[Request], dict[str, str]]:
    """生成 FastAPI 依赖; 未配置 token 时所有受保护接口返回 503"""

    def dependency(request: Request) -> dict[str, str]:
        if not expected_token:
            raise HTTPException(status_code=503, detail="ADMIN_AUTH_TOKEN 未配置")
        token = extract_token(request)
        if token is None or not hmac.compare_digest(token, expected_token):
            raise HTTPException(status_code=401, detail="未授权")
        return {"auth": "token", "user": "admin-token"}

    return dependency
