"""Tests for plone_mcp.blocks.registry."""

from __future__ import annotations

import json

import pytest

from plone_mcp.blocks.registry import SchemaRegistry
from plone_mcp.errors import PloneConfigError, PloneNotFoundError


class TestLoad:
    def test_packaged_registry_loads(self, registry):
        assert {"title", "slate", "image", "teaser", "__button", "separator"} <= registry.block_types

    def test_type_names_follow_file_order(self, registry):
        assert registry.type_names()[:3] == ["title", "slate", "image"]

    def test_every_type_has_description_and_fields(self, registry):
        for spec in registry.specifications().values():
            assert isinstance(spec["description"], str)
            assert isinstance(spec["fields"], dict)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "blocks.json"
        path.write_text(json.dumps({"slate": {"fields": {}}}))
        assert SchemaRegistry.load(path).type_names() == ["slate"]

    def test_missing_file_fails_fast(self, tmp_path):
        with pytest.raises(PloneConfigError):
            SchemaRegistry.load(tmp_path / "absent.json")

    def test_invalid_json_fails_fast(self, tmp_path):
        path = tmp_path / "blocks.json"
        path.write_text("{not json")
        with pytest.raises(PloneConfigError) as exc_info:
            SchemaRegistry.load(path)
        assert exc_info.value.cause is not None

    def test_non_object_fails_fast(self, tmp_path):
        path = tmp_path / "blocks.json"
        path.write_text("[1, 2]")
        with pytest.raises(PloneConfigError):
            SchemaRegistry.load(path)

    def test_empty_registry_rejected(self):
        with pytest.raises(PloneConfigError):
            SchemaRegistry({})


class TestLookup:
    def test_resolve_alias(self, registry):
        assert registry.resolve("text") == "slate"

    def test_resolve_unknown_lists_available(self, registry):
        with pytest.raises(PloneNotFoundError) as exc_info:
            registry.resolve("carousel")
        assert exc_info.value.context["block_type"] == "carousel"
        assert "slate" in exc_info.value.context["available_types"]
        assert "Available types:" in exc_info.value.message

    def test_contains(self, registry):
        assert "slate" in registry
        assert "text" in registry
        assert "carousel" not in registry
        assert 42 not in registry

    def test_specification_is_a_copy(self, registry):
        spec = registry.specification("slate")
        spec["fields"].clear()
        assert registry.specification("slate")["fields"]

    def test_constructor_copies_input(self):
        source = {"slate": {"fields": {"text": {}}}}
        registry = SchemaRegistry(source)
        source["slate"]["fields"].clear()
        assert registry.specification("slate")["fields"] == {"text": {}}

    def test_examples_cover_every_type(self, registry):
        assert set(registry.examples()) == registry.block_types
        assert registry.example("video") == {}
