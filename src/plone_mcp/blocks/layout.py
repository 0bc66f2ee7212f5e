"""Pure functions over a block mapping and its layout.

Volto renders ``blocks_layout.items`` in order and looks every id up in
``blocks``.  The functions here keep the two consistent and maintain the
title-block invariant:

* exactly one block has ``"@type": "title"``,
* its id is the first entry of the layout,
* its data is exactly ``{"@type": "title"}``.

None of them mutate their arguments.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from typing import Any

from plone_mcp.errors import PloneValidationError
from plone_mcp.models import TITLE_BLOCK_TYPE, BlocksPayload
from plone_mcp.utils import new_block_id


def is_title_block(block: Any) -> bool:
    return isinstance(block, Mapping) and block.get("@type") == TITLE_BLOCK_TYPE


def insert_block_id(layout: list[str], block_id: str, position: int | None) -> list[str]:
    """Return a copy of *layout* with *block_id* inserted at *position*.

    *position* is honoured when ``0 <= position <= len(layout)``; ``None``
    and out-of-range values append.
    """
    result = list(layout)
    if isinstance(position, int) and not isinstance(position, bool) and 0 <= position <= len(result):
        result.insert(position, block_id)
    else:
        result.append(block_id)
    return result


def reconcile_layout(blocks: Mapping[str, Any], items: Any) -> list[str]:
    """Make *items* a duplicate-free layout covering every key of *blocks*.

    Duplicates keep their first occurrence.  Blocks the layout does not
    mention are appended in mapping order.

    Raises
    ------
    PloneValidationError
        If *items* is not a list of strings, or names ids that are not in
        *blocks*.
    """
    if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
        raise PloneValidationError(
            message="blocks_layout.items must be a list of block id strings",
            context={"field": "blocks_layout.items", "value": repr(items)[:200]},
        )

    layout = list(dict.fromkeys(items))
    missing = [block_id for block_id in layout if block_id not in blocks]
    if missing:
        raise PloneValidationError(
            message=(
                f"blocks_layout references unknown block ids: {', '.join(missing)}. "
                f"Valid ids: {', '.join(blocks)}"
            ),
            context={
                "field": "blocks_layout.items",
                "block_ids": missing,
                "valid_ids": list(blocks),
            },
        )

    listed = set(layout)
    layout.extend(block_id for block_id in blocks if block_id not in listed)
    return layout


def enforce_title_block(
    payload: BlocksPayload,
    id_factory: Callable[[], str] = new_block_id,
) -> BlocksPayload:
    """Return a copy of *payload* that satisfies the title-block invariant.

    The first title block in layout order is kept (falling back to one that
    is only present in the mapping), moved to the front and reset to its
    canonical data.  Any further title blocks are dropped.  When there is
    none, one is created under a fresh id from *id_factory*.

    Applying this function to its own output changes nothing.
    """
    blocks: dict[str, dict[str, Any]] = copy.deepcopy(payload.blocks)
    layout = list(payload.layout)

    candidates = [block_id for block_id in layout if is_title_block(blocks.get(block_id))]
    candidates.extend(
        block_id for block_id, block in blocks.items()
        if is_title_block(block) and block_id not in candidates
    )

    title_id = candidates[0] if candidates else id_factory()
    surplus = set(candidates[1:])
    for block_id in surplus:
        del blocks[block_id]

    blocks[title_id] = {"@type": TITLE_BLOCK_TYPE}
    layout = [title_id] + [
        block_id for block_id in layout
        if block_id != title_id and block_id not in surplus
    ]
    return BlocksPayload(blocks=blocks, layout=layout)


def document_payload(document: Mapping[str, Any]) -> BlocksPayload:
    """Copy the ``blocks`` / ``blocks_layout`` of a fetched document."""
    blocks = copy.deepcopy(dict(document.get("blocks") or {}))
    layout_field = document.get("blocks_layout") or {}
    items = layout_field.get("items") if isinstance(layout_field, Mapping) else None
    layout = [i for i in items if isinstance(i, str)] if isinstance(items, list) else []
    return BlocksPayload(blocks=blocks, layout=layout)
