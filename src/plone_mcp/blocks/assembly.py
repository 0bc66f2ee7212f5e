"""Block assembly engine.

:class:`BlockAssembler` owns the staged-layout slot and turns block
specifications into the ``blocks`` / ``blocks_layout`` payload written to
Plone:

* :meth:`~BlockAssembler.stage` normalizes a batch of blocks and stages the
  resulting layout.
* :meth:`~BlockAssembler.resolve_for_write` picks the payload for a content
  create/update: a valid staged layout first (consumed), then the caller's
  explicit blocks, then nothing (update) or an empty page (create).
* :meth:`~BlockAssembler.add_block`, :meth:`~BlockAssembler.update_block`
  and :meth:`~BlockAssembler.remove_block` edit a fetched document's blocks.

Every payload handed out satisfies the title-block invariant (see
:mod:`plone_mcp.blocks.layout`).
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from plone_mcp.blocks.layout import (
    document_payload,
    enforce_title_block,
    insert_block_id,
    is_title_block,
    reconcile_layout,
)
from plone_mcp.blocks.normalizer import BlockNormalizer
from plone_mcp.blocks.registry import SchemaRegistry
from plone_mcp.blocks.staging import StagingSlot
from plone_mcp.errors import PloneNotFoundError, PloneValidationError
from plone_mcp.models import BlockSpec, BlocksPayload, StageResult, StagingState
from plone_mcp.observability import MetricsHook, NoopMetricsHook, get_logger
from plone_mcp.utils import new_block_id

log = get_logger("plone_mcp.assembly")


class BlockAssembler:
    """Stage, resolve and edit Volto block layouts.

    Parameters
    ----------
    registry:
        Schema registry with the known block types.
    normalizer:
        Per-type block normalizer.
    slot:
        Staged-layout slot.  A 60 second slot by default.
    id_factory:
        Returns a fresh block id per call.
    metrics:
        Optional metrics hook.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        normalizer: BlockNormalizer,
        slot: StagingSlot | None = None,
        id_factory: Callable[[], str] = new_block_id,
        metrics: MetricsHook | None = None,
    ) -> None:
        self._registry = registry
        self._normalizer = normalizer
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._slot = slot if slot is not None else StagingSlot(metrics=self._metrics)
        self._new_id = id_factory

    @property
    def staging_state(self) -> StagingState:
        return self._slot.state

    @property
    def staging_ttl_seconds(self) -> float:
        return self._slot.ttl_seconds

    # -- staging ----------------------------------------------------------

    async def stage(self, specs: Sequence[BlockSpec | Mapping[str, Any]]) -> StageResult:
        """Normalize *specs* in order and stage the resulting layout.

        Each block gets a fresh id and is inserted at its ``position`` when
        that is within the layout built so far, otherwise appended.  The
        previously staged layout is replaced.

        Raises
        ------
        PloneNotFoundError
            For an unknown block type.
        PloneValidationError
            For invalid block data.  The slot is empty afterwards.
        """
        result = StageResult()
        payload = BlocksPayload()
        try:
            for raw in specs:
                spec = raw if isinstance(raw, BlockSpec) else _spec_from_mapping(raw)
                block = await self._normalizer.normalize(spec.type, spec.data)
                block_id = self._new_id()
                payload.blocks[block_id] = block
                payload.layout = insert_block_id(payload.layout, block_id, spec.position)
                result.block_ids.append(block_id)
                result.types.append(block["@type"])
        except Exception:
            self._slot.clear()
            raise

        self._slot.put(payload)
        self._metrics.increment("plone_mcp.blocks_staged_total", value=len(result.block_ids))
        log.info(
            "Staged block layout",
            extra={
                "extra_fields": {
                    "op": "stage",
                    "blocks": len(result.block_ids),
                    "ttl_seconds": self._slot.ttl_seconds,
                }
            },
        )
        return result

    def discard_staged(self) -> None:
        self._slot.clear()

    def resolve_for_write(
        self,
        blocks: Mapping[str, Any] | None = None,
        blocks_layout: Mapping[str, Any] | list[str] | None = None,
        *,
        is_update: bool,
    ) -> BlocksPayload | None:
        """Choose the block payload for a content create or update.

        Precedence: a valid staged layout (consumed), then the supplied
        *blocks* / *blocks_layout*, then ``None`` for an update or an empty
        page for a create.  The staged slot is empty after this call.

        Raises
        ------
        PloneValidationError
            If the supplied blocks or layout are malformed.
        """
        staged = self._slot.take()
        if staged is not None:
            self._metrics.increment("plone_mcp.staged_layout_consumed_total")
            log.info(
                "Consumed staged block layout",
                extra={
                    "extra_fields": {
                        "op": "update" if is_update else "create",
                        "blocks": len(staged.blocks),
                    }
                },
            )
            payload = staged
        elif blocks is not None or blocks_layout is not None:
            payload = _supplied_payload(blocks, blocks_layout)
        elif is_update:
            return None
        else:
            payload = BlocksPayload()
        return enforce_title_block(payload, self._new_id)

    # -- single-block edits -----------------------------------------------

    async def add_block(
        self,
        document: Mapping[str, Any],
        block_type: str,
        data: Mapping[str, Any] | None = None,
        position: int | None = None,
    ) -> tuple[str, BlocksPayload]:
        """Return the new block's id and *document*'s blocks with it added."""
        block = await self._normalizer.normalize(block_type, data)
        current = document_payload(document)
        block_id = self._new_id()
        current.blocks[block_id] = block
        current.layout = insert_block_id(current.layout, block_id, position)
        return block_id, enforce_title_block(current, self._new_id)

    async def update_block(
        self,
        document: Mapping[str, Any],
        block_id: str,
        data: Mapping[str, Any],
    ) -> BlocksPayload:
        """Return *document*'s blocks with *data* merged into one block.

        Raises
        ------
        PloneNotFoundError
            If *block_id* is not in the document.
        PloneValidationError
            If the change would turn a block into or out of a title block,
            or the merged data is invalid.
        """
        current = document_payload(document)
        existing = self._existing_block(current, block_id)

        new_type = data.get("@type") if isinstance(data, Mapping) else None
        if new_type is not None and new_type != existing.get("@type"):
            if is_title_block(existing) or is_title_block({"@type": new_type}):
                raise PloneValidationError(
                    message="The title block is managed automatically; its type cannot change",
                    context={"field": "@type", "block_id": block_id, "value": new_type},
                )
            raise PloneValidationError(
                message=(
                    f"Cannot change block {block_id} from {existing.get('@type')} to {new_type}; "
                    "remove it and add a new block instead"
                ),
                context={"field": "@type", "block_id": block_id, "value": new_type},
            )

        if is_title_block(existing):
            current.blocks[block_id] = dict(existing)
        else:
            current.blocks[block_id] = await self._normalizer.normalize_update(existing, data)
        return enforce_title_block(current, self._new_id)

    def remove_block(self, document: Mapping[str, Any], block_id: str) -> BlocksPayload:
        """Return *document*'s blocks without *block_id*.

        Raises
        ------
        PloneNotFoundError
            If *block_id* is not in the document.
        PloneValidationError
            If *block_id* is the title block.
        """
        current = document_payload(document)
        existing = self._existing_block(current, block_id)
        if is_title_block(existing):
            raise PloneValidationError(
                message="The title block is managed automatically and cannot be removed",
                context={"block_id": block_id},
            )
        del current.blocks[block_id]
        current.layout = [i for i in current.layout if i != block_id]
        return enforce_title_block(current, self._new_id)

    # -- schemas ----------------------------------------------------------

    def get_schema(self, block_type: str | None = None) -> dict[str, Any]:
        """Return one block type's specification and example, or all of them.

        Raises
        ------
        PloneNotFoundError
            If *block_type* is given and unknown.
        """
        if block_type:
            name = self._registry.resolve(block_type)
            return {
                "blockType": name,
                "specification": self._registry.specification(name),
                "example": self._registry.example(name),
            }
        return {
            "availableTypes": self._registry.type_names(),
            "specifications": self._registry.specifications(),
            "examples": self._registry.examples(),
        }

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _existing_block(current: BlocksPayload, block_id: str) -> dict[str, Any]:
        block = current.blocks.get(block_id)
        if block is None:
            valid_ids = list(current.blocks)
            raise PloneNotFoundError(
                message=(
                    f"Block with ID {block_id} not found. "
                    f"Valid block IDs: {', '.join(valid_ids) or '(none)'}"
                ),
                context={"block_id": block_id, "valid_ids": valid_ids},
            )
        return block


def _spec_from_mapping(raw: Mapping[str, Any]) -> BlockSpec:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("type"), str):
        raise PloneValidationError(
            message="Each block needs a 'type' string",
            context={"field": "type", "value": repr(raw)[:200]},
        )
    data = raw.get("data")
    if data is not None and not isinstance(data, Mapping):
        raise PloneValidationError(
            message=f"Block data for {raw['type']} must be an object",
            context={"field": "data", "block_type": raw["type"]},
        )
    return BlockSpec.from_dict(dict(raw))


def _supplied_payload(
    blocks: Mapping[str, Any] | None,
    blocks_layout: Mapping[str, Any] | list[str] | None,
) -> BlocksPayload:
    if blocks is None:
        blocks = {}
    if not isinstance(blocks, Mapping) or not all(isinstance(b, Mapping) for b in blocks.values()):
        raise PloneValidationError(
            message="blocks must map block ids to block objects",
            context={"field": "blocks"},
        )

    if isinstance(blocks_layout, Mapping):
        items = blocks_layout.get("items")
    else:
        items = blocks_layout
    if items is None:
        items = list(blocks)

    layout = reconcile_layout(blocks, items)
    return BlocksPayload(blocks=copy.deepcopy(dict(blocks)), layout=layout)
