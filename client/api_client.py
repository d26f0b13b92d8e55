"""
client/api_client.py — REST 客户端

响应信封 {"code": 0, "message": "...", "data": ...}；非 2xx 或 code != 0 抛出 ApiError。
"""
from typing import Any, Dict, Optional

import requests

from core.config import API_BASE
from core.log import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, code: int = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"[{status_code}] {message}")


class ApiClient:
    def __init__(self, base_url: str, token: str = None, timeout: float = 30, session: requests.Session = None):
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout = timeout
        self.token = token
        self.http = session or requests.Session()

    def set_token(self, token: str) -> None:
        self.token = str(token or "").strip() or None

    def clear_token(self) -> None:
        self.token = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, json: Any = None, params: Dict = None, data: Dict = None) -> Any:
        url = f"{self.base_url}{API_BASE}{path}"
        resp = self.http.request(
            method,
            url,
            json=json,
            params=params,
            data=data,
            headers=self._headers(),
            timeout=self.timeout,
        )
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            detail = body.get("detail", body) if isinstance(body, dict) else {}
            if not isinstance(detail, dict):
                detail = {"message": str(detail)}
            raise ApiError(resp.status_code, str(detail.get("message") or resp.text[:300]), detail.get("code"))
        if isinstance(body, dict) and "code" in body and "data" in body:
            if body.get("code") not in (0, None):
                raise ApiError(resp.status_code, str(body.get("message") or ""), body.get("code"))
            return body.get("data")
        return body

    def get(self, path: str, params: Dict = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json if json is not None else {})

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json if json is not None else {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # ── 业务方法 ────────────────────────────────────────────────────────────────
    def login(self, email: str, password: str) -> Dict:
        data = self.request("POST", "/auth/login", data={"username": email, "password": password})
        self.set_token(data.get("access_token"))
        return data

    def get_session(self) -> Optional[Dict]:
        return self.get("/auth/session")

    def feed(self, limit: int = 20, offset: int = 0):
        return self.get("/community/feed", params={"limit": limit, "offset": offset})

    def toggle_post_like(self, post_id: str) -> Dict:
        return self.post(f"/community/posts/{post_id}/like")

    def chat(self, conversation_id: str, character_id: str, message: str, history=None) -> Dict:
        return self.post("/ai/chat", json={
            "conversation_id": conversation_id,
            "character_id": character_id,
            "message": message,
            "conversation_history": list(history or []),
        })
