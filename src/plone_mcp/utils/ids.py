"""Block id generation."""

from __future__ import annotations

import uuid


def new_block_id() -> str:
    """Return a fresh block id.

    Volto keys blocks by random UUID4 strings; the value is opaque to the
    REST API and only has to be unique within one document.

    Examples
    --------
    >>> len(new_block_id())
    36
    """
    return str(uuid.uuid4())
