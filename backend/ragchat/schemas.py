from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .markdown_render import to_html

ChatRole = Literal["User", "AI"]


class Citation(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    file_path: str | None = None
    snippet: str | None = None
    image_urls: tuple[str, ...] = ()


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str = ""
    avatar_url: str | None = None
    citations: tuple[Citation, ...] = ()

    @property
    def html_content(self) -> str:
        return to_html(self.content)


class TokenUsage(BaseModel):
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0


class CompletionResult(BaseModel):
    content: str = ""
    citations: list[Citation] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    ok: bool = True


class SessionState(BaseModel):
    chat_history: list[ChatMessage] = Field(default_factory=list)
    system_prompt: str
    max_response: int = Field(gt=0)
    usage: TokenUsage = Field(default_factory=TokenUsage)

    def to_store(self) -> dict[str, Any]:
        return {
            "ChatHistory": [m.model_dump() for m in self.chat_history],
            "SystemPrompt": self.system_prompt,
            "MaxResponse": self.max_response,
            "TotalTokens": self.usage.total_tokens,
            "PromptTokens": self.usage.prompt_tokens,
            "CompletionTokens": self.usage.completion_tokens,
        }

    @classmethod
    def from_store(cls, data: dict[str, Any] | None, *, system_prompt: str, max_response: int) -> SessionState:
        data = data or {}
        history = data.get("ChatHistory") if isinstance(data.get("ChatHistory"), list) else []
        prompt = data.get("SystemPrompt")
        stored_max = data.get("MaxResponse")
        return cls(
            chat_history=[ChatMessage.model_validate(m) for m in history],
            system_prompt=prompt if isinstance(prompt, str) and prompt else system_prompt,
            max_response=stored_max if isinstance(stored_max, int) and stored_max > 0 else max_response,
            usage=TokenUsage(
                total_tokens=int(data.get("TotalTokens") or 0),
                prompt_tokens=int(data.get("PromptTokens") or 0),
                completion_tokens=int(data.get("CompletionTokens") or 0),
            ),
        )


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    completion_endpoint: str | None = None
    missing_config: dict[str, list[str]] = Field(default_factory=dict)
