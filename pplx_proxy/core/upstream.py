"""HTTP client for the upstream search service, bound to one session."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
import string
import uuid
from typing import Any, Iterable, Optional

import httpx

from ..logging import mask_token
from ..types import AskRequest, UploadFields, UploadSlot
from .exceptions import UploadError, UpstreamStatusError
from .prompt import ImageAttachment
from .upstream_transport import upstream_mounts

logger = logging.getLogger("pplx-proxy")

BASE_URL = "https://www.perplexity.ai"
ASK_URL = f"{BASE_URL}/rest/sse/perplexity_ask"
CREATE_UPLOAD_URL = f"{BASE_URL}/rest/uploads/create_upload_url?version=2.18&source=default"
SESSION_URL = f"{BASE_URL}/api/auth/session"
CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
S3_UPLOAD_URL = "https://ppl-ai-file-upload.s3.amazonaws.com/"
PRIVATE_IMAGE_BASE = "https://pplx-res.cloudinary.com/image/private"

SESSION_COOKIE = "__Secure-next-auth.session-token"
API_VERSION = "2.18"

DEFAULT_HEADERS = {
    "accept-language": "en-US,en;q=0.9",
    "cache-control": "no-cache",
    "origin": BASE_URL,
    "pragma": "no-cache",
    "priority": "u=1, i",
    "referer": f"{BASE_URL}/",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
}

SUPPORTED_BLOCK_USE_CASES = [
    "answer_modes",
    "media_items",
    "knowledge_cards",
    "inline_entity_cards",
    "place_widgets",
    "finance_widgets",
    "sports_widgets",
    "shopping_widgets",
    "jobs_widgets",
    "search_result_widgets",
    "entity_list_answer",
    "todo_list",
]


def _random_name(length: int = 5) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


class PerplexityClient:
    """Talks to the upstream on behalf of exactly one session.

    Uploaded attachment references live on the instance: they are only
    valid for the session that uploaded them, so a new client (and a new
    attachment list) is used for every attempt.
    """

    def __init__(
        self,
        session_token: str,
        *,
        model: str,
        search: bool = False,
        proxy: Optional[str] = None,
        timeout: float = 600.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self.session_token = session_token
        self.model = model
        self.search = search
        self.attachments: list[str] = []
        self._client = httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            proxy=proxy or None,
            mounts=upstream_mounts() or None,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PerplexityClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _session_headers(self) -> dict[str, str]:
        if not self.session_token:
            return {}
        return {"cookie": f"{SESSION_COOKIE}={self.session_token}"}

    # ------------------------------------------------------------------
    # Ask
    # ------------------------------------------------------------------

    def build_ask_request(self, query: str, is_incognito: bool) -> AskRequest:
        """Shape the ask payload for this client's model and search mode."""
        params: dict[str, Any] = {
            "attachments": list(self.attachments),
            "language": "en-US",
            "timezone": "America/New_York",
            "search_focus": "writing",
            "sources": [],
            "search_recency_filter": None,
            "frontend_uuid": str(uuid.uuid4()),
            "mode": "copilot",
            "model_preference": self.model,
            "is_related_query": False,
            "is_sponsored": False,
            "visitor_id": str(uuid.uuid4()),
            "user_nextauth_id": str(uuid.uuid4()),
            "frontend_context_uuid": str(uuid.uuid4()),
            "prompt_source": "user",
            "query_source": "home",
            "browser_history_summary": [],
            "is_incognito": is_incognito,
            "use_schematized_api": True,
            "send_back_text_in_streaming_api": False,
            "supported_block_use_cases": list(SUPPORTED_BLOCK_USE_CASES),
            "client_coordinates": None,
            "is_nav_suggestions_disabled": False,
            "version": API_VERSION,
        }
        if self.search:
            params["search_focus"] = "internet"
            params["sources"] = ["web"]
        return {"params": params, "query_str": query}  # type: ignore[typeddict-item]

    async def open_ask_stream(self, query: str, is_incognito: bool) -> httpx.Response:
        """Send the ask request and return the open event-stream response.

        The caller owns the returned response and must close it.

        Raises:
            UpstreamStatusError: If the upstream answers with anything but 200.
            httpx.HTTPError: On transport failures.
        """
        body = self.build_ask_request(query, is_incognito)
        logger.debug(
            "Ask request for model %s (search=%s, attachments=%d, query_len=%d)",
            self.model,
            self.search,
            len(self.attachments),
            len(query),
        )
        request = self._client.build_request(
            "POST", ASK_URL, json=body, headers=self._session_headers()
        )
        resp = await self._client.send(request, stream=True)
        logger.info("Upstream response status code: %d", resp.status_code)

        if resp.status_code != 200:
            try:
                detail = (await resp.aread()).decode("utf-8", errors="replace")
            finally:
                await resp.aclose()
            if resp.status_code != 429:
                logger.error("Unexpected upstream response: %s", detail[:500])
            raise UpstreamStatusError(resp.status_code)
        return resp

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_images(self, images: Iterable[ImageAttachment]) -> None:
        images = list(images)
        logger.info("Uploading %d images", len(images))
        for image in images:
            filename = f"{_random_name()}.jpg"
            data = await self._image_bytes(image)
            slot = await self._create_upload_slot(filename, "image/jpeg")
            reference = await self._upload_to_store(slot.get("fields") or {}, "img", data, filename)
            self.attachments.append(reference)

    async def upload_text(self, text: str) -> None:
        logger.info("Uploading prompt of %d characters as a text file", len(text))
        filename = f"{_random_name()}.txt"
        slot = await self._create_upload_slot(filename, "text/plain")
        reference = await self._upload_to_store(
            slot.get("fields") or {}, "txt", text.encode("utf-8"), filename
        )
        self.attachments.append(reference)

    async def _image_bytes(self, image: ImageAttachment) -> bytes:
        if image.data is not None:
            try:
                # Line-wrapped payloads are accepted; any other stray byte is not
                data = image.data.replace("\r", "").replace("\n", "")
                return base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise UploadError(f"invalid base64 image data: {exc}") from exc
        try:
            resp = await self._client.get(image.url or "")
        except httpx.HTTPError as exc:
            raise UploadError(f"failed to fetch image {image.url}: {exc}") from exc
        if resp.status_code != 200:
            raise UploadError(f"failed to fetch image {image.url}: status {resp.status_code}")
        return resp.content

    async def _create_upload_slot(self, filename: str, content_type: str) -> UploadSlot:
        body = {
            "filename": filename,
            "content_type": content_type,
            "source": "default",
            "file_size": 12000,
            "force_image": False,
        }
        try:
            resp = await self._client.post(
                CREATE_UPLOAD_URL, json=body, headers=self._session_headers()
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"error creating upload URL: {exc}") from exc
        if resp.status_code != 200:
            logger.error("Create upload URL returned %d: %s", resp.status_code, resp.text[:500])
            raise UploadError(f"unexpected status code: {resp.status_code}")
        try:
            slot = resp.json()
        except json.JSONDecodeError as exc:
            raise UploadError(f"error decoding upload URL response: {exc}") from exc
        if not isinstance(slot, dict):
            raise UploadError("upload URL response is not an object")
        if slot.get("rate_limited"):
            logger.error("Rate limit exceeded for upload URL")
            raise UploadError("rate limit exceeded")
        return slot  # type: ignore[return-value]

    async def _upload_to_store(
        self, fields: UploadFields, kind: str, data: bytes, filename: str
    ) -> str:
        """Post a signed multipart form and return the attachment reference."""
        if kind == "img":
            form = {
                "timestamp": str(fields.get("timestamp", "")),
                "unique_filename": fields.get("unique_filename", ""),
                "folder": fields.get("folder", ""),
                "use_filename": fields.get("use_filename", ""),
                "public_id": fields.get("public_id", ""),
                "transformation": fields.get("transformation", ""),
                "moderation": fields.get("moderation", ""),
                "resource_type": fields.get("resource_type", ""),
                "api_key": fields.get("api_key", ""),
                "cloud_name": fields.get("cloud_name", ""),
                "signature": fields.get("signature", ""),
                "type": "private",
            }
            url = CLOUDINARY_UPLOAD_URL.format(cloud_name=fields.get("cloud_name", ""))
            content_type = "image/jpeg"
        else:
            form = {
                "acl": fields.get("acl", ""),
                "Content-Type": "text/plain",
                "tagging": fields.get("tagging", ""),
                "key": fields.get("key", ""),
                "AWSAccessKeyId": fields.get("AWSAccessKeyId", ""),
                "x-amz-security-token": fields.get("x-amz-security-token", ""),  # type: ignore[typeddict-item]
                "policy": fields.get("policy", ""),
                "signature": fields.get("signature", ""),
            }
            url = S3_UPLOAD_URL
            content_type = "text/plain"

        form = {name: "" if value is None else str(value) for name, value in form.items()}

        logger.info("Uploading file %s", filename)
        try:
            resp = await self._client.post(
                url, data=form, files={"file": (filename, data, content_type)}
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"error uploading {filename}: {exc}") from exc
        if resp.status_code >= 400:
            logger.error("Upload of %s returned %d: %s", filename, resp.status_code, resp.text[:500])
            raise UploadError(f"upload of {filename} failed with status {resp.status_code}")

        if kind != "img":
            return S3_UPLOAD_URL + str(fields.get("key", ""))

        try:
            secure_url = resp.json()["secure_url"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise UploadError(f"image upload response missing secure_url: {exc}") from exc
        marker = secure_url.find("/user_uploads")
        if marker == -1:
            return secure_url
        return PRIVATE_IMAGE_BASE + secure_url[marker:]

    # ------------------------------------------------------------------
    # Session refresh
    # ------------------------------------------------------------------

    async def fetch_refreshed_token(self) -> str:
        """Ask the upstream to roll the session cookie and return the new value."""
        resp = await self._client.get(SESSION_URL, headers=self._session_headers())
        if resp.status_code != 200:
            logger.error(
                "Session refresh for %s returned %d", mask_token(self.session_token), resp.status_code
            )
            raise UpstreamStatusError(resp.status_code)
        token = resp.cookies.get(SESSION_COOKIE)
        if not token:
            raise UpstreamStatusError(resp.status_code, "session cookie not found")
        return token
