"""Async client for the Plone REST API (``plone.restapi``)."""

from .content import ContentAPI
from .transport import PloneTransport, normalize_path

__all__ = [
    "ContentAPI",
    "PloneTransport",
    "normalize_path",
]
