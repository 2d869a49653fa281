"""Authentication module for pplx-proxy."""

from .api_key import ApiKeyValidator, extract_api_key, get_api_key_validator, require_api_key

__all__ = ["ApiKeyValidator", "extract_api_key", "get_api_key_validator", "require_api_key"]
