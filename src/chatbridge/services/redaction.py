"""Редактирование payload/заголовков перед логированием (без текстов и ключей)."""

import hashlib
from typing import Any

from chatbridge.credentials import mask_secret

REDACTED_TEXT = "<redacted>"

_SECRET_HEADERS = {"authorization", "x-api-key", "x-goog-api-key", "api-key"}


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def redact_chat_payload(payload: dict) -> dict:
    p = dict(payload)
    if isinstance(p.get("system"), str):
        p["system"] = REDACTED_TEXT
    msgs = p.get("messages")
    if isinstance(msgs, list):
        out_msgs = []
        for m in msgs:
            if not isinstance(m, dict):
                continue
            content = m.get("content")
            if isinstance(content, str):
                out_msgs.append(
                    {
                        "role": m.get("role"),
                        "content": REDACTED_TEXT,
                        "content_len": len(content),
                        "content_sha256": sha256_hex(content),
                    }
                )
            else:
                out_msgs.append({"role": m.get("role"), "content": REDACTED_TEXT})
        p["messages"] = out_msgs
    return p


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    out = {}
    for k, v in headers.items():
        if k.lower() in _SECRET_HEADERS:
            # "Bearer sk-..." -> "Bearer sk-...abcd"
            scheme, _, token = v.partition(" ")
            out[k] = f"{scheme} {mask_secret(token)}" if token else mask_secret(v)
        else:
            out[k] = v
    return out


def redact_result_summary(result: Any) -> dict:
    # Храним минимум для отладки (без текста).
    try:
        raw = repr(result)
    except Exception:
        raw = "<unrepr>"
    return {
        "sha256": sha256_hex(raw),
        "keys": (
            sorted([k for k in result if isinstance(k, str)])
            if isinstance(result, dict)
            else []
        ),
    }
