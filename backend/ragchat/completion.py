from __future__ import annotations

from typing import Any

import httpx

from .config import AppConfig, AzureOpenAIOptions, AzureSearchOptions
from .logging_utils import get_logger
from .response_parser import parse_completion_response, transport_error_text
from .schemas import CompletionResult, TokenUsage

log = get_logger(__name__)

DEFAULT_QUERY_TYPE = "simple"
STRICTNESS = 3
TOP_N_DOCUMENTS = 5


def build_completion_url(openai: AzureOpenAIOptions) -> str:
    endpoint = (openai.endpoint or "").rstrip("/")
    return (
        f"{endpoint}/openai/deployments/{openai.deployment}/chat/completions"
        f"?api-version={openai.api_version}"
    )


def build_search_data_source(search: AzureSearchOptions) -> dict[str, Any]:
    parameters: dict[str, Any] = {
        "endpoint": search.endpoint,
        "index_name": search.index,
        "authentication": {"type": "api_key", "key": search.api_key},
        "query_type": search.query_type or DEFAULT_QUERY_TYPE,
        "in_scope": True,
        "strictness": STRICTNESS,
        "top_n_documents": TOP_N_DOCUMENTS,
    }
    if search.semantic_configuration:
        parameters["semantic_configuration"] = search.semantic_configuration
    return {"type": "azure_search", "parameters": parameters}


def build_request_body(
    system_prompt: str,
    user_message: str,
    max_tokens: int,
    search: AzureSearchOptions,
) -> dict[str, Any]:
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")
    return {
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
        "max_tokens": max_tokens,
        "data_sources": [build_search_data_source(search)],
    }


class CompletionClient:
    def __init__(self, config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_s),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        *,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        previous_usage: TokenUsage,
    ) -> CompletionResult:
        openai = self.config.openai
        timeout_s = self.config.request_timeout_s
        try:
            payload = build_request_body(system_prompt, user_message, max_tokens, self.config.search)
            resp = await self.client.post(
                build_completion_url(openai),
                json=payload,
                headers={"api-key": openai.key or ""},
            )
        except httpx.TimeoutException as e:
            log.error("Completion request timed out after %.1fs (%s)", timeout_s, type(e).__name__)
            return CompletionResult(
                content=transport_error_text(f"request timed out after {timeout_s:.1f}s"),
                usage=previous_usage.model_copy(),
                ok=False,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            msg = str(e).strip() or repr(e)
            log.error("Completion request failed (%s): %s", type(e).__name__, msg)
            return CompletionResult(content=transport_error_text(msg), usage=previous_usage.model_copy(), ok=False)

        return parse_completion_response(resp.status_code, resp.text, previous_usage, self.config.blob)
