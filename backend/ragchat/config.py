from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


PACKAGE_DIR = Path(__file__).resolve().parent
STATIC_DIR = Path(os.getenv("RAGCHAT_STATIC_DIR", str(PACKAGE_DIR / "static")))

# Relative paths resolve against the working directory of the server process.
APP_DB_PATH = Path(os.getenv("RAGCHAT_DB_PATH", "data/sessions.sqlite")).expanduser()

REQUEST_TIMEOUT_S = float(os.getenv("RAGCHAT_REQUEST_TIMEOUT_S", "30"))

DEFAULT_STORAGE_ACCOUNT = "glenfarnedemo"
DEFAULT_CONTAINER = "documents"
DEFAULT_STORAGE_DOMAIN = "blob.core.windows.net"


class _Options:
    # Optional fields never show up as missing.
    optional: tuple[str, ...] = ()

    def missing_fields(self) -> list[str]:
        return [
            f.name
            for f in fields(self)  # type: ignore[arg-type]
            if f.name not in self.optional and not getattr(self, f.name)
        ]

    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass(frozen=True)
class AzureOpenAIOptions(_Options):
    endpoint: str | None = None
    key: str | None = None
    deployment: str | None = None
    api_version: str | None = None

    @classmethod
    def from_env(cls) -> AzureOpenAIOptions:
        return cls(
            endpoint=_env("AZURE_OPENAI_ENDPOINT"),
            key=_env("AZURE_OPENAI_KEY"),
            deployment=_env("AZURE_OPENAI_DEPLOYMENT"),
            api_version=_env("AZURE_OPENAI_API_VERSION"),
        )


@dataclass(frozen=True)
class AzureSearchOptions(_Options):
    endpoint: str | None = None
    index: str | None = None
    api_key: str | None = None
    semantic_configuration: str | None = None
    query_type: str | None = None

    optional = ("semantic_configuration", "query_type")

    @classmethod
    def from_env(cls) -> AzureSearchOptions:
        return cls(
            endpoint=_env("AZURE_SEARCH_ENDPOINT"),
            index=_env("AZURE_SEARCH_INDEX"),
            api_key=_env("AZURE_SEARCH_API_KEY"),
            semantic_configuration=_env("AZURE_SEARCH_SEMANTIC_CONFIGURATION"),
            query_type=_env("AZURE_SEARCH_QUERY_TYPE"),
        )


@dataclass(frozen=True)
class AzureBlobOptions(_Options):
    connection_string: str | None = None
    container_name: str | None = None
    storage_account_name: str | None = None
    storage_domain: str = DEFAULT_STORAGE_DOMAIN

    optional = ("connection_string",)

    @classmethod
    def from_env(cls) -> AzureBlobOptions:
        return cls(
            connection_string=_env("AZURE_BLOB_CONNECTION_STRING"),
            container_name=_env("AZURE_BLOB_CONTAINER_NAME"),
            storage_account_name=_env("AZURE_BLOB_STORAGE_ACCOUNT_NAME"),
            storage_domain=_env("AZURE_BLOB_STORAGE_DOMAIN") or DEFAULT_STORAGE_DOMAIN,
        )

    @property
    def account(self) -> str:
        return self.storage_account_name or DEFAULT_STORAGE_ACCOUNT

    @property
    def container(self) -> str:
        return (self.container_name or DEFAULT_CONTAINER).strip("/")

    @property
    def account_url(self) -> str:
        return f"https://{self.account}.{self.storage_domain}"


@dataclass(frozen=True)
class AppConfig:
    openai: AzureOpenAIOptions
    search: AzureSearchOptions
    blob: AzureBlobOptions
    request_timeout_s: float = REQUEST_TIMEOUT_S

    @classmethod
    def from_env(cls) -> AppConfig:
        return cls(
            openai=AzureOpenAIOptions.from_env(),
            search=AzureSearchOptions.from_env(),
            blob=AzureBlobOptions.from_env(),
        )

    def missing(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for group, opts in (("azure_openai", self.openai), ("azure_search", self.search), ("azure_blob", self.blob)):
            names = opts.missing_fields()
            if names:
                out[group] = names
        return out
