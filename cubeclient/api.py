"""
HTTP transport layer, User-Agent construction, and structured logging for cubeclient.
"""

import asyncio
import hashlib
import json
import re
import sys
import time
import urllib.error
import urllib.parse
import urllib.request

from cubeclient import config
from cubeclient.exceptions import HTTPError, TransportError
from cubeclient.models import ApiResponse

_SENSITIVE_PARAMS = {"accesstoken", "sig", "token"}


# ---------------------------------------------------------------------------
# Security helpers
# ---------------------------------------------------------------------------


def _mask_token(token):
    """Show only first 6 chars of a token for safe logging."""
    if not token:
        return ""
    return token[:6] + "..." if len(token) > 6 else token


def _sanitize_error(body, max_len=500):
    """Truncate and clean error body for safe display."""
    if not body:
        return ""
    cleaned = re.sub(r"<[^>]+>", "", body)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if len(cleaned) > max_len:
        return cleaned[:max_len] + "... [truncated]"
    return cleaned


def _sanitize_url_for_log(url):
    """Mask access tokens and signatures in URLs before logging."""
    parsed = urllib.parse.urlsplit(url)
    if not parsed.query:
        return url
    pairs = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
    masked = []
    for key, value in pairs:
        if key.lower() in _SENSITIVE_PARAMS:
            masked.append((key, "***"))
        else:
            masked.append((key, value))
    safe_query = urllib.parse.urlencode(masked, doseq=True)
    return urllib.parse.urlunsplit(
        (parsed.scheme, parsed.netloc, parsed.path, safe_query, parsed.fragment)
    )


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


def _log_http_event(**fields):
    """Emit structured HTTP logs to stderr when enabled."""
    if not config.HTTP_LOG_ENABLED:
        return
    print("[HTTP] " + json.dumps(fields, ensure_ascii=False, sort_keys=True), file=sys.stderr)


def _log_session_event(**fields):
    """Emit structured session lifecycle logs to stderr when enabled."""
    if not config.HTTP_LOG_ENABLED:
        return
    print("[SESSION] " + json.dumps(fields, ensure_ascii=False, sort_keys=True), file=sys.stderr)


def _is_sampled_request(request_id):
    """Decide if a request should be logged based on sample rate."""
    rate = config.HTTP_LOG_SAMPLE_RATE
    if rate <= 0:
        return False
    if rate >= 1:
        return True
    if not request_id:
        return False
    digest = hashlib.sha256(request_id.encode("utf-8")).digest()
    bucket = int.from_bytes(digest[:4], "big") / 4294967295.0
    return bucket < rate


# ---------------------------------------------------------------------------
# User-Agent
# ---------------------------------------------------------------------------


def user_agent(bundle=None):
    """Build ``name/version bundle/Ngit/sha``; missing fragments are omitted."""
    bundle = bundle if bundle is not None else config.bundle_info()
    name = bundle.get("name") or config.DEFAULT_APP_NAME
    version = bundle.get("version")
    build = bundle.get("build")
    git_sha = bundle.get("git_sha")
    agent = str(name)
    if version:
        agent += f"/{version}"
    if build:
        agent += f" bundle/{build}"
    if git_sha:
        agent += f"git/{git_sha}"
    return agent


# ---------------------------------------------------------------------------
# HTTP request layer
# ---------------------------------------------------------------------------


def _http_request(request):
    """Send an HttpRequest with urllib. Returns ApiResponse on 2xx.
    Raises HTTPError for HTTP errors (caller handles specific codes).
    Raises TransportError for network/timeout/oversized responses.
    No retries: retry policy belongs to callers."""
    headers = dict(request.headers or {})
    request_id = headers.get("X-Request-Id")
    safe_url = _sanitize_url_for_log(request.url)
    sampled = _is_sampled_request(request_id)
    timeout = max(1, config.HTTP_TIMEOUT_SECONDS)
    start = time.perf_counter()
    req = urllib.request.Request(
        request.url, data=request.body, headers=headers, method=request.method
    )
    if sampled:
        _log_http_event(
            phase="request",
            method=request.method,
            url=safe_url,
            request_id=request_id,
            timeout_seconds=timeout,
        )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read(config.HTTP_MAX_RESPONSE_BYTES + 1)
            if len(raw) > config.HTTP_MAX_RESPONSE_BYTES:
                raise TransportError(
                    f"[ERROR] Response too large (>{config.HTTP_MAX_RESPONSE_BYTES} bytes)."
                )
            status = getattr(resp, "status", 200)
            if sampled:
                _log_http_event(
                    phase="response",
                    method=request.method,
                    url=safe_url,
                    status=status,
                    content_type=resp.headers.get("Content-Type", ""),
                    bytes=len(raw),
                    latency_ms=round((time.perf_counter() - start) * 1000, 2),
                    request_id=request_id,
                )
            return ApiResponse(status=status, body=raw, headers=dict(resp.headers.items()))
    except urllib.error.HTTPError as e:
        error_body = (
            e.read(config.HTTP_MAX_RESPONSE_BYTES).decode("utf-8", errors="replace")
            if e.fp
            else ""
        )
        if sampled:
            _log_http_event(
                phase="response",
                method=request.method,
                url=safe_url,
                status=e.code,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
                request_id=request_id,
            )
        raise HTTPError(e.code, e.reason, error_body, headers=e.headers) from e
    except TimeoutError as e:
        if sampled:
            _log_http_event(
                phase="network_error",
                method=request.method,
                url=safe_url,
                error="timeout",
                request_id=request_id,
            )
        raise TransportError(
            f"[ERROR] Request timed out after {timeout} seconds. Is the server reachable?"
        ) from e
    except urllib.error.URLError as e:
        if sampled:
            _log_http_event(
                phase="network_error",
                method=request.method,
                url=safe_url,
                error=f"url_error: {e.reason}",
                request_id=request_id,
            )
        raise TransportError(f"[ERROR] Connection failed: {e.reason}") from e


class UrllibTransport:
    """Async transport running the blocking urllib call in a worker thread."""

    async def __call__(self, request):
        return await asyncio.to_thread(_http_request, request)
