import asyncio
import json
from typing import Optional, Dict, Any, Tuple

import httpx
import yaml


def normalize_response_mode(cfg: dict) -> Optional[str]:
    """
    Returns 'lite' | 'none' | None from cfg['response-mode'] (or the legacy `lite` flag).
    """
    mode = cfg.get('response-mode')
    if mode is None:
        return 'lite' if cfg.get('lite') is True else None
    match mode:
        case str():
            s = mode.strip().lower()
            return s if s in ('lite', 'none') else None
        case _:
            return None


def decode_body(content: bytes, content_type: Optional[str] = None) -> Any:
    """
    Turns a response body into a script value.
    JSON and YAML bodies become tables, text becomes a string, anything else stays bytes.
    """
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct.endswith("json"):
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return content
    if ct.endswith("yaml") or ct.endswith("yml"):
        try:
            return yaml.safe_load(content.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError):
            return content
    if ct.startswith("text/"):
        return content.decode("utf-8", errors="replace")
    return content


async def http_request(method: str, url: str, *,
                       config: Optional[Dict] = None) -> Tuple[int, bytes, Dict[str, str]]:
    """
    Core HTTP helper. Returns (status, body bytes, lower-cased headers).

    With response-mode `lite` non-2xx statuses are returned to the caller;
    otherwise they raise after the retries are exhausted.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    retries = int(cfg.pop('retries', 2))
    backoff = float(cfg.pop('backoff', 0.2))
    headers = dict(cfg.pop('headers', {}))
    params = dict(cfg.pop('params', {}))
    mode = normalize_response_mode(cfg)

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        last_exc = None
        for attempt in range(retries + 1):
            try:
                resp = await client.request(
                    method.upper(),
                    url,
                    headers=headers,
                    params=params,
                )
                headers_map = {str(k).lower(): v for k, v in resp.headers.items()}
                if mode == 'lite' or 200 <= resp.status_code < 300:
                    return (int(resp.status_code), resp.content, headers_map)
                preview = (resp.text or "")[:200]
                raise RuntimeError(f"HTTP {resp.status_code} for {url}: {preview}")
            except Exception as e:
                last_exc = e
                if attempt < retries:
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise last_exc


async def http_get_bytes(url: str, config: Optional[Dict] = None) -> bytes:
    _, content, _ = await http_request('GET', url, config=config)
    return content


async def http_get(url: str, config: Optional[Dict] = None) -> Any:
    _, content, headers = await http_request('GET', url, config=config)
    return decode_body(content, headers.get("content-type"))
