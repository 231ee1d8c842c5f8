"""Endpoint tests for the chat page, the blob-image proxy and health."""

import json
import logging
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from ragchat import app_db
from ragchat.blob_store import BlobContent, BlobFetchError
from ragchat.completion import CompletionClient
from ragchat.main import app, get_blob_store, get_completion_client, get_config
from ragchat.session import SESSION_COOKIE

GROUNDED_RESPONSE = {
    "choices": [
        {
            "message": {
                "content": "The pump must be **primed** first.",
                "context": {
                    "citations": [
                        {"title": "Pump manual", "filepath": "manuals/pump.pdf", "content": "Prime before use."}
                    ]
                },
            }
        }
    ],
    "usage": {"total_tokens": 42, "prompt_tokens": 30, "completion_tokens": 12},
}


class FakeBlobStore:
    def __init__(self, blobs: dict[str, tuple[bytes, str]]) -> None:
        self.blobs = blobs
        self.requested: list[str] = []

    def fetch(self, blob_path: str) -> BlobContent:
        self.requested.append(blob_path)
        if blob_path not in self.blobs:
            raise BlobFetchError(f"missing {blob_path}")
        data, content_type = self.blobs[blob_path]
        return BlobContent(chunks=iter([data]), content_type=content_type)

    def close(self) -> None:
        pass


@pytest.fixture
def completion_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def completion_payload() -> dict:
    return GROUNDED_RESPONSE


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore({"manuals/pump.png": (b"\x89PNG-bytes", "image/png")})


@pytest.fixture
def client(session_db, app_config, completion_requests, completion_payload, blob_store) -> Iterator[TestClient]:
    def handler(request: httpx.Request) -> httpx.Response:
        completion_requests.append(request)
        return httpx.Response(200, text=json.dumps(completion_payload))

    completion = CompletionClient(app_config, transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_config] = lambda: app_config
    app.dependency_overrides[get_completion_client] = lambda: completion
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _session_state(client: TestClient) -> dict:
    state = app_db.load_session_state(client.cookies[SESSION_COOKIE])
    assert state is not None
    return state


def test_index_renders_empty_chat_and_issues_cookie(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Ask a question" in response.text
    assert SESSION_COOKIE in response.cookies


def test_post_question_redirects_and_records_turns(client, completion_requests):
    response = client.post("/", data={"user_input": "How do I start the pump?"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"

    assert len(completion_requests) == 1
    sent = json.loads(completion_requests[0].content)
    assert sent["messages"][0]["content"] == "You are an AI assistant that helps people find information."
    assert sent["messages"][1]["content"] == "How do I start the pump?"
    assert sent["max_tokens"] == 800

    state = _session_state(client)
    history = state["ChatHistory"]
    assert [m["role"] for m in history] == ["User", "AI"]
    assert history[1]["content"] == "The pump must be **primed** first."
    citation = history[1]["citations"][0]
    assert citation["image_urls"] == ["https://acct.blob.core.windows.net/docs/manuals/pump.png"]
    assert state["TotalTokens"] == 42
    assert state["PromptTokens"] == 30
    assert state["CompletionTokens"] == 12


def test_page_shows_rendered_answer_and_proxied_image(client):
    page = client.post("/", data={"user_input": "How do I start the pump?"})
    assert page.status_code == 200
    assert "<strong>primed</strong>" in page.text
    assert "Pump manual" in page.text
    assert 'src="/blob-image?blobPath=manuals/pump.png"' in page.text


def test_transcript_is_append_only(client):
    client.post("/", data={"user_input": "first"})
    client.post("/", data={"user_input": "second"})
    history = _session_state(client)["ChatHistory"]
    assert [m["content"] for m in history if m["role"] == "User"] == ["first", "second"]
    assert len(history) == 4


def test_settings_update_without_question(client, completion_requests):
    client.get("/")
    client.post("/", data={"system_prompt_input": "Answer in French.", "max_response_input": "256"})
    assert completion_requests == []
    state = _session_state(client)
    assert state["SystemPrompt"] == "Answer in French."
    assert state["MaxResponse"] == 256

    client.post("/", data={"user_input": "Bonjour"})
    sent = json.loads(completion_requests[0].content)
    assert sent["messages"][0]["content"] == "Answer in French."
    assert sent["max_tokens"] == 256


def test_blank_question_is_ignored(client, completion_requests):
    client.post("/", data={"user_input": "   ", "max_response_input": "abc"})
    assert completion_requests == []


@pytest.mark.parametrize("completion_payload", [{"choices": [{"message": {"content": "no usage"}}]}])
def test_missing_usage_keeps_counters(client, completion_payload):
    client.get("/")
    app_db.save_session_state(
        client.cookies[SESSION_COOKIE],
        {"ChatHistory": [], "TotalTokens": 9, "PromptTokens": 5, "CompletionTokens": 4},
    )
    client.post("/", data={"user_input": "hello"})
    state = _session_state(client)
    assert (state["TotalTokens"], state["PromptTokens"], state["CompletionTokens"]) == (9, 5, 4)


def test_reset_drops_stored_session(client):
    client.post("/", data={"user_input": "hello", "system_prompt_input": "Answer tersely."})
    assert _session_state(client)["ChatHistory"]
    response = client.post("/reset")
    assert response.status_code == 200
    assert app_db.load_session_state(client.cookies[SESSION_COOKIE]) is None
    assert "primed" not in response.text
    assert "Answer tersely." not in response.text


def test_blob_image_streams_content(client, blob_store):
    response = client.get("/blob-image", params={"blobPath": "manuals/pump.png"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == b"\x89PNG-bytes"
    assert blob_store.requested == ["manuals/pump.png"]


def test_blob_image_missing_parameter(client):
    assert client.get("/blob-image").status_code == 400
    assert client.get("/blob-image", params={"blobPath": "  "}).status_code == 400


def test_blob_image_not_found(client, caplog):
    with caplog.at_level(logging.ERROR, logger="ragchat.main"):
        response = client.get("/blob-image", params={"blobPath": "nope.png"})
    assert response.status_code == 404
    errors = [r for r in caplog.records if r.name == "ragchat.main" and r.levelno == logging.ERROR]
    assert errors
    assert any("nope.png" in r.getMessage() for r in errors)


def test_health_reports_complete_config(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["missing_config"] == {}
    assert data["completion_endpoint"] == "https://example.openai.azure.com/"
