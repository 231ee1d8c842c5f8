from __future__ import annotations

import secrets
from dataclasses import dataclass

from fastapi import Request, Response

from . import app_db
from .logging_utils import get_logger
from .schemas import ChatMessage, SessionState, TokenUsage
from .settings import get_defaults

log = get_logger(__name__)

SESSION_COOKIE = "ragchat_session"
_SESSION_TTL_S = 60 * 60 * 24 * 30


def _new_session_id() -> str:
    return secrets.token_urlsafe(24)


@dataclass
class ChatSessionContext:
    session_id: str
    state: SessionState
    is_new: bool = False

    def append(self, message: ChatMessage) -> None:
        self.state.chat_history.append(message)

    def set_usage(self, usage: TokenUsage) -> None:
        self.state.usage = usage

    def save(self) -> None:
        app_db.save_session_state(self.session_id, self.state.to_store())

    def reset(self) -> None:
        # Dropping the stored state also reverts the prompt and budget to defaults.
        app_db.delete_session_state(self.session_id)
        defaults = get_defaults()
        self.state = SessionState(system_prompt=defaults.system_prompt, max_response=defaults.max_response)

    def apply_cookie(self, response: Response) -> None:
        if not self.is_new:
            return
        response.set_cookie(
            SESSION_COOKIE,
            self.session_id,
            httponly=True,
            samesite="lax",
            secure=False,
            max_age=_SESSION_TTL_S,
        )


def load_session(request: Request) -> ChatSessionContext:
    defaults = get_defaults()
    session_id = str(request.cookies.get(SESSION_COOKIE) or "").strip()
    is_new = False
    data = None
    if session_id:
        data = app_db.load_session_state(session_id)
    else:
        session_id = _new_session_id()
        is_new = True

    try:
        state = SessionState.from_store(data, system_prompt=defaults.system_prompt, max_response=defaults.max_response)
    except (TypeError, ValueError):
        log.warning("Session %s held invalid state; starting a fresh transcript", session_id)
        state = SessionState(system_prompt=defaults.system_prompt, max_response=defaults.max_response)
    return ChatSessionContext(session_id=session_id, state=state, is_new=is_new)
