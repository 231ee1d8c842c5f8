from __future__ import annotations

import pytest

from ragchat import config
from ragchat.config import AppConfig, AzureBlobOptions, AzureOpenAIOptions, AzureSearchOptions


@pytest.fixture
def blob_options() -> AzureBlobOptions:
    return AzureBlobOptions(storage_account_name="acct", container_name="docs")


@pytest.fixture
def app_config(blob_options: AzureBlobOptions) -> AppConfig:
    return AppConfig(
        openai=AzureOpenAIOptions(
            endpoint="https://example.openai.azure.com/",
            key="secret-key",
            deployment="gpt-4o",
            api_version="2024-05-01-preview",
        ),
        search=AzureSearchOptions(
            endpoint="https://example.search.windows.net",
            index="docs-index",
            api_key="search-key",
        ),
        blob=blob_options,
        request_timeout_s=5.0,
    )


@pytest.fixture
def session_db(tmp_path, monkeypatch):
    db_path = tmp_path / "sessions.sqlite"
    monkeypatch.setattr(config, "APP_DB_PATH", db_path)
    from ragchat import app_db

    app_db.init_db()
    return db_path

