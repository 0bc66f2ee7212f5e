"""Connection and runtime configuration for plone-mcp.

:class:`PloneConfig` captures every tuneable knob of the server: where the
Plone site lives, how to authenticate, HTTP timeouts, and how long a
prepared block layout stays valid.

Values can be given explicitly or resolved from the environment with
:meth:`PloneConfig.from_env`.  Explicit values always win over environment
variables.

Environment variables
---------------------

* ``PLONE_BASE_URL`` -- base URL of the Plone site.
* ``PLONE_USERNAME`` / ``PLONE_PASSWORD`` -- basic-auth credentials.
* ``PLONE_TOKEN`` -- JWT token, used instead of username/password.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from plone_mcp.errors import PloneConfigError

ENV_BASE_URL = "PLONE_BASE_URL"
ENV_USERNAME = "PLONE_USERNAME"
ENV_PASSWORD = "PLONE_PASSWORD"
ENV_TOKEN = "PLONE_TOKEN"

_ENV_VARS: dict[str, str] = {
    "base_url": ENV_BASE_URL,
    "username": ENV_USERNAME,
    "password": ENV_PASSWORD,
    "token": ENV_TOKEN,
}

_SECRET_FIELDS: frozenset[str] = frozenset({"password", "token"})

API_PREFIX = "/++api++"
"""Traversal prefix under which plone.restapi answers JSON requests."""


@dataclass
class PloneConfig:
    """Complete configuration for a plone-mcp server instance.

    Parameters
    ----------
    base_url:
        Base URL of the Plone site, e.g. ``https://demo.plone.org``.
        **Required.**
    username:
        Username for basic authentication.
    password:
        Password for basic authentication.  Never logged.
    token:
        JWT token.  Takes precedence over username/password.  Never logged.
    timeout_seconds:
        HTTP request timeout for REST API calls.
    image_check_timeout_seconds:
        Timeout for the ``HEAD`` request that verifies an image URL.
    staging_ttl_seconds:
        How long a prepared block layout stays valid before it is treated
        as absent.
    """

    base_url: str = ""

    username: str | None = None

    password: str | None = None

    token: str | None = None

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    image_check_timeout_seconds: float = 10.0

    # ── Blocks ──────────────────────────────────────────────────────────
    staging_ttl_seconds: float = 60.0

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.base_url or not self.base_url.strip():
            raise PloneConfigError(
                message=(
                    "Base URL is required. Provide it via base_url or the "
                    f"{ENV_BASE_URL} environment variable."
                ),
                context={"field": "base_url", "env_var": ENV_BASE_URL},
            )

        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise PloneConfigError(
                message=f"Invalid base URL: {self.base_url} (e.g. https://example.com)",
                context={"field": "base_url", "value": self.base_url},
            )

        for name in ("username", "password", "token"):
            value = getattr(self, name)
            if value is not None and not value.strip():
                raise PloneConfigError(
                    message=(
                        f"{name} cannot be an empty string. Omit it to use the "
                        f"{_ENV_VARS[name]} environment variable."
                    ),
                    context={"field": name, "env_var": _ENV_VARS[name]},
                )

        if self.timeout_seconds <= 0:
            raise PloneConfigError(
                message=f"timeout_seconds must be > 0, got {self.timeout_seconds}",
                context={"field": "timeout_seconds"},
            )
        if self.image_check_timeout_seconds <= 0:
            raise PloneConfigError(
                message=(
                    "image_check_timeout_seconds must be > 0, got "
                    f"{self.image_check_timeout_seconds}"
                ),
                context={"field": "image_check_timeout_seconds"},
            )
        if self.staging_ttl_seconds <= 0:
            raise PloneConfigError(
                message=f"staging_ttl_seconds must be > 0, got {self.staging_ttl_seconds}",
                context={"field": "staging_ttl_seconds"},
            )

    @classmethod
    def from_env(
        cls,
        environ: dict[str, str] | None = None,
        **overrides: Any,
    ) -> PloneConfig:
        """Build a config from explicit values, falling back to the environment.

        ``None`` overrides are ignored, so optional tool arguments can
        be forwarded as-is.
        """
        env = os.environ if environ is None else environ
        values = {k: v for k, v in overrides.items() if v is not None}
        for name, var in _ENV_VARS.items():
            if name not in values and env.get(var):
                values[name] = env[var]
        return cls(**values)

    @property
    def api_url(self) -> str:
        """Root URL of the REST API, e.g. ``https://site/++api++``."""
        return self.base_url.rstrip("/") + API_PREFIX

    def __repr__(self) -> str:
        """Mask secrets to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name in _SECRET_FIELDS and val is not None:
                parts.append(f"{f.name}='****'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"PloneConfig({', '.join(parts)})"
