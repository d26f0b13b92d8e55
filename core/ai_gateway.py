"""
core/ai_gateway.py — OpenAI 兼容模型网关

单次调用、不重试；失败统一抛出 UpstreamGatewayFailure。
base_url 以 mock:// 开头或 api_key 为 mock 时返回本地模拟结果（联调/测试）。
"""
import json
import os
import re
from typing import Any, Dict, List, Optional

import requests

from core.config import cfg
from core.errors import UpstreamGatewayFailure
from core.events import log_event, E
from core.log import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "gpt-image-1"
MOCK_KEYS = ["mock", "mock-key", "test-mock"]


def _mask_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}{'*' * (len(api_key) - 8)}{api_key[-4:]}"


def provider_config(include_secret: bool = False) -> Dict[str, Any]:
    base_url = str(
        cfg.get("ai.provider.base_url", "")
        or os.getenv("AI_PROVIDER_BASE_URL", "")
        or DEFAULT_BASE_URL
    ).strip()
    model_name = str(
        cfg.get("ai.provider.model_name", "")
        or os.getenv("AI_PROVIDER_MODEL_NAME", "")
        or DEFAULT_MODEL
    ).strip()
    image_model = str(cfg.get("ai.provider.image_model", "") or DEFAULT_IMAGE_MODEL).strip()
    api_key = str(
        cfg.get("ai.provider.api_key", "")
        or os.getenv("AI_PROVIDER_API_KEY", "")
        or ""
    ).strip()
    try:
        temperature = int(cfg.get("ai.provider.temperature", None) or os.getenv("AI_PROVIDER_TEMPERATURE", 70) or 70)
    except Exception:
        temperature = 70
    try:
        timeout = float(cfg.get("ai.provider.timeout_seconds", 120) or 120)
    except Exception:
        timeout = 120.0
    return {
        "base_url": base_url,
        "model_name": model_name,
        "image_model": image_model,
        "api_key": api_key if include_secret else _mask_key(api_key),
        "temperature": max(0, min(100, temperature)),
        "timeout": max(1.0, timeout),
    }


def _is_mock(runtime: Dict[str, Any]) -> bool:
    return str(runtime.get("base_url") or "").lower().startswith("mock://") or \
        str(runtime.get("api_key") or "").lower() in MOCK_KEYS


def _mock_reply(system_prompt: str, messages: List[Dict[str, str]]) -> str:
    name = "Assistant"
    m = re.search(r"You are ([^.\n]+)\.", system_prompt or "")
    if m:
        name = m.group(1).strip()[:80]
    last = ""
    for item in reversed(messages or []):
        if item.get("role") == "user":
            last = str(item.get("content") or "")
            break
    return f"[{name}] {last[:200]}".strip()


def _post(runtime: Dict[str, Any], path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    api_key = str(runtime.get("api_key") or "").strip()
    if not api_key:
        raise UpstreamGatewayFailure("AI provider is not configured")
    endpoint = f"{str(runtime['base_url']).rstrip('/')}{path}"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json; charset=utf-8",
    }
    try:
        resp = requests.post(
            endpoint,
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers=headers,
            timeout=runtime.get("timeout", 120),
        )
    except requests.RequestException as e:
        log_event(logger, E.AI_GATEWAY_FAIL, level="error", path=path, reason=e)
        raise UpstreamGatewayFailure(f"AI provider request failed: {e}")
    if resp.status_code >= 400:
        log_event(logger, E.AI_GATEWAY_FAIL, level="error", path=path, status_code=resp.status_code,
                  body=resp.text[:300])
        raise UpstreamGatewayFailure(f"AI provider returned {resp.status_code}")
    try:
        return resp.json()
    except ValueError:
        raise UpstreamGatewayFailure("AI provider returned invalid JSON")


def generate_text(system_prompt: str, messages: List[Dict[str, str]]) -> str:
    """messages: [{"role": "user"|"assistant", "content": str}]"""
    runtime = provider_config(include_secret=True)
    if _is_mock(runtime):
        return _mock_reply(system_prompt, messages)

    payload = {
        "model": runtime["model_name"],
        "temperature": float(runtime["temperature"]) / 100.0,
        "messages": [{"role": "system", "content": system_prompt}] + [
            {"role": m.get("role"), "content": m.get("content", "")} for m in (messages or [])
        ],
    }
    data = _post(runtime, "/chat/completions", payload)
    choices = data.get("choices") or []
    if not choices:
        raise UpstreamGatewayFailure("AI provider returned no choices")
    text = str((choices[0].get("message") or {}).get("content") or "").strip()
    if not text:
        raise UpstreamGatewayFailure("AI provider returned empty content")
    return text


def _extract_json_object(text: str) -> Dict[str, Any]:
    raw = str(text or "").strip()
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", raw, re.S)
    if fenced:
        raw = fenced.group(1)
    else:
        start, end = raw.find("{"), raw.rfind("}")
        if start >= 0 and end > start:
            raw = raw[start:end + 1]
    try:
        data = json.loads(raw)
    except ValueError:
        raise UpstreamGatewayFailure("AI provider returned a malformed story")
    if not isinstance(data, dict):
        raise UpstreamGatewayFailure("AI provider returned a malformed story")
    return data


def generate_story(prompt: str, genre: str, characters: Optional[List[Dict[str, str]]] = None) -> Dict[str, str]:
    runtime = provider_config(include_secret=True)
    if _is_mock(runtime):
        return {
            "title": f"A {genre} tale",
            "description": prompt[:200],
            "content": f"Once upon a time... {prompt}",
        }

    cast = "\n".join(f"- {c.get('name')}: {c.get('description')}" for c in (characters or []))
    system_prompt = (
        "You write short stories. Answer with a single JSON object with the keys "
        "\"title\", \"description\" and \"content\" and nothing else."
    )
    user_prompt = f"Generate a {genre} story based on this prompt: {prompt}"
    if cast:
        user_prompt += f"\nCharacters:\n{cast}"
    data = _extract_json_object(generate_text(system_prompt, [{"role": "user", "content": user_prompt}]))
    story = {key: str(data.get(key) or "").strip() for key in ["title", "description", "content"]}
    if not story["title"] or not story["content"]:
        raise UpstreamGatewayFailure("AI provider returned an incomplete story")
    return story


def generate_image(prompt: str, style: str) -> str:
    """返回图片 URL 或 data URL，没有图片时返回空字符串。"""
    runtime = provider_config(include_secret=True)
    text = f"Create an image in {style} style: {prompt}"
    if _is_mock(runtime):
        return "https://mock.local/images/generated.png"

    data = _post(runtime, "/images/generations", {"model": runtime["image_model"], "prompt": text, "n": 1})
    items = data.get("data") or []
    if not items:
        return ""
    first = items[0] or {}
    if first.get("url"):
        return str(first["url"])
    if first.get("b64_json"):
        return f"data:image/png;base64,{first['b64_json']}"
    return ""
