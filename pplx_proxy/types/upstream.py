"""Wire types for the upstream ask endpoint and its upload helpers."""

from typing import Any
from typing_extensions import TypedDict


class AskParams(TypedDict, total=False):
    """Parameters block of an ask request."""
    attachments: list[str]
    language: str
    timezone: str
    search_focus: str
    sources: list[str]
    search_recency_filter: Any
    frontend_uuid: str
    mode: str
    model_preference: str
    is_related_query: bool
    is_sponsored: bool
    visitor_id: str
    user_nextauth_id: str
    frontend_context_uuid: str
    prompt_source: str
    query_source: str
    browser_history_summary: list[Any]
    is_incognito: bool
    use_schematized_api: bool
    send_back_text_in_streaming_api: bool
    supported_block_use_cases: list[str]
    client_coordinates: Any
    is_nav_suggestions_disabled: bool
    version: str


class AskRequest(TypedDict):
    params: AskParams
    query_str: str


class UploadFields(TypedDict, total=False):
    """Signed form fields returned by ``create_upload_url``.

    Image uploads use the Cloudinary subset, text uploads the S3 subset.
    """
    timestamp: int
    unique_filename: str
    folder: str
    use_filename: str
    public_id: str
    transformation: str
    moderation: str
    resource_type: str
    api_key: str
    cloud_name: str
    signature: str
    AWSAccessKeyId: str
    key: str
    tagging: str
    policy: str
    acl: str


class UploadSlot(TypedDict, total=False):
    s3_bucket_url: str
    s3_object_url: str
    fields: UploadFields
    rate_limited: bool
