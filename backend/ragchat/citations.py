from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

from .config import AzureBlobOptions
from .logging_utils import get_logger

log = get_logger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")
DERIVABLE_EXTENSIONS = (".json", ".txt", ".md", ".pdf")
TEXT_SEGMENT = "/text/"

BLOB_PROXY_PATH = "/blob-image"


def is_image_reference(candidate: str, storage_domain: str) -> bool:
    low = candidate.strip().lower()
    if not low:
        return False
    if low.endswith(IMAGE_EXTENSIONS):
        return True
    return storage_domain.lower() in low


def _decode_url_array(value: str) -> list[str]:
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        log.debug("Citation url looked like a JSON array but did not decode: %.80s", value)
        return []
    if not isinstance(decoded, list):
        return []
    return [x for x in decoded if isinstance(x, str)]


def _url_candidates(value: Any) -> list[str]:
    if not isinstance(value, str) or not value.strip():
        return []
    if value.lstrip().startswith("["):
        return _decode_url_array(value)
    return [value]


def derive_placeholder_image(file_path: str | None) -> str | None:
    """Guess the rendered page image for a text document (``a/b.pdf`` -> ``a/b.png``)."""
    if not file_path or TEXT_SEGMENT in file_path:
        return None
    low = file_path.lower()
    for ext in DERIVABLE_EXTENSIONS:
        if low.endswith(ext):
            derived = file_path[: -len(ext)] + ".png"
            return derived if derived != file_path else None
    return None


def discover_image_refs(raw: dict[str, Any], file_path: str | None, blob: AzureBlobOptions) -> list[str]:
    refs: list[str] = []
    if isinstance(raw.get("images"), list):
        for img in raw["images"]:
            if isinstance(img, str) and img.strip():
                refs.append(img)
    elif "image_url" in raw:
        img = raw.get("image_url")
        if isinstance(img, str) and img.strip():
            refs.append(img)
    elif "url" in raw:
        for candidate in _url_candidates(raw.get("url")):
            if is_image_reference(candidate, blob.storage_domain):
                refs.append(candidate)

    if not refs:
        derived = derive_placeholder_image(file_path)
        if derived:
            refs.append(derived)
    return refs


def normalize_blob_url(ref: str, blob: AzureBlobOptions) -> str:
    try:
        if ref.lower().startswith(("http://", "https://")):
            return ref
        clean_path = ref.lstrip("/")
        return f"{blob.account_url}/{blob.container}/{clean_path}"
    except Exception as e:
        log.warning("Failed to normalize blob URL for %r: %s", ref, e)
        return ref


def resolve_citation_images(raw: dict[str, Any], file_path: str | None, blob: AzureBlobOptions) -> list[str]:
    out: list[str] = []
    for ref in discover_image_refs(raw, file_path, blob):
        url = normalize_blob_url(ref, blob)
        if url not in out:
            out.append(url)
    return out


def blob_path_from_url(url: str, blob: AzureBlobOptions) -> str:
    if not url:
        return url
    low = url.lower()
    container = blob.container.lower()

    prefix = f"/{container}/"
    idx = low.find(prefix)
    if idx >= 0:
        return url[idx + len(prefix) :]

    prefix = f"{container}/"
    if low.startswith(prefix):
        return url[len(prefix) :]

    marker = f"{blob.storage_domain.lower()}/"
    idx = low.find(marker)
    if idx >= 0:
        return url[idx + len(marker) :]

    if url.startswith("/"):
        return url[1:]
    return url


def blob_proxy_url(image_url: str, blob: AzureBlobOptions) -> str:
    return f"{BLOB_PROXY_PATH}?blobPath={quote(blob_path_from_url(image_url, blob), safe='/')}"
