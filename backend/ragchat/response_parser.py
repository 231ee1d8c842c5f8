from __future__ import annotations

import json
from typing import Any

from .citations import resolve_citation_images
from .config import AzureBlobOptions
from .logging_utils import get_logger
from .schemas import Citation, CompletionResult, TokenUsage

log = get_logger(__name__)

_USAGE_FIELDS = ("total_tokens", "prompt_tokens", "completion_tokens")


def error_text(status_code: int, body: str) -> str:
    return f"[Error: HTTP {status_code} - {body}]"


def transport_error_text(message: str) -> str:
    return f"[Error calling Azure OpenAI: {message}]"


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_usage(usage: Any, previous: TokenUsage) -> TokenUsage:
    if not isinstance(usage, dict):
        return previous.model_copy()
    values = previous.model_dump()
    for name in _USAGE_FIELDS:
        v = usage.get(name)
        # bool is an int subclass; a boolean counter is malformed.
        if isinstance(v, int) and not isinstance(v, bool):
            values[name] = v
    return TokenUsage(**values)


def parse_tool_citation(entry: Any, blob: AzureBlobOptions) -> Citation | None:
    if not isinstance(entry, dict) or entry.get("role") != "tool":
        return None
    name = _opt_str(entry.get("name"))
    return Citation(
        title=name,
        file_path=name,
        snippet=_opt_str(entry.get("content")),
        image_urls=resolve_citation_images(entry, name, blob),
    )


def parse_citation(entry: Any, blob: AzureBlobOptions) -> Citation | None:
    if not isinstance(entry, dict):
        return None
    try:
        file_path = _opt_str(entry.get("filepath")) if "filepath" in entry else _opt_str(entry.get("url"))
        return Citation(
            title=_opt_str(entry.get("title")),
            file_path=file_path,
            snippet=_opt_str(entry.get("content")),
            image_urls=resolve_citation_images(entry, file_path, blob),
        )
    except Exception:
        log.exception("Skipping malformed citation entry")
        return None


def _collect(entries: Any, parse_one, blob: AzureBlobOptions, block: str) -> list[Citation]:
    if not isinstance(entries, list):
        if entries is not None:
            log.warning("Ignoring citation block %r: expected a list, got %s", block, type(entries).__name__)
        return []
    out: list[Citation] = []
    try:
        for entry in entries:
            citation = parse_one(entry, blob)
            if citation is not None:
                out.append(citation)
    except Exception:
        log.exception("Failed to parse citation block %r", block)
        return []
    return out


def extract_citations(message: dict[str, Any], blob: AzureBlobOptions) -> list[Citation]:
    context = message.get("context")
    if not isinstance(context, dict):
        return []
    citations = _collect(context.get("messages"), parse_tool_citation, blob, "messages")
    citations.extend(_collect(context.get("citations"), parse_citation, blob, "citations"))
    return citations


def parse_completion_response(
    status_code: int,
    body: str,
    previous_usage: TokenUsage,
    blob: AzureBlobOptions,
) -> CompletionResult:
    if not 200 <= status_code < 300:
        log.warning("Completion API returned HTTP %d", status_code)
        return CompletionResult(content=error_text(status_code, body), usage=previous_usage.model_copy(), ok=False)

    try:
        root = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        log.warning("Completion API returned undecodable JSON: %s", e)
        root = None
    if not isinstance(root, dict):
        return CompletionResult(
            content=transport_error_text("invalid JSON response"),
            usage=previous_usage.model_copy(),
            ok=False,
        )

    usage = parse_usage(root.get("usage"), previous_usage)

    choices = root.get("choices")
    if not isinstance(choices, list) or not choices:
        return CompletionResult(content="", usage=usage)

    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") if isinstance(first.get("message"), dict) else {}
    content = _opt_str(message.get("content")) or ""

    return CompletionResult(content=content, citations=extract_citations(message, blob), usage=usage)
