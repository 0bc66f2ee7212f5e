"""Tests for plone_mcp.blocks.image_check."""

from __future__ import annotations

import httpx
import pytest

from plone_mcp.blocks.image_check import ImageChecker, ImageURLChecker, is_data_image_url


def checker_for(handler) -> ImageURLChecker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ImageURLChecker(client=client)


class TestDataURLs:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("data:image/png;base64,iVBORw0KGgo=", True),
            ("DATA:image/svg+xml;utf8,<svg/>", True),
            ("data:text/plain;base64,aGk=", False),
            ("https://example.com/data:image/png", False),
        ],
    )
    def test_prefix(self, url, expected):
        assert is_data_image_url(url) is expected

    async def test_data_url_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        checker = checker_for(handler)
        assert await checker.is_image("data:image/gif;base64,R0lGOD") is True
        assert await checker.is_image("data:text/html,<p>") is False


class TestHeadCheck:
    async def test_image_content_type_accepted(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["accept"] = request.headers["accept"]
            return httpx.Response(200, headers={"Content-Type": "image/png"})

        assert await checker_for(handler).is_image("https://example.com/logo.png") is True
        assert seen == {"method": "HEAD", "accept": "image/*"}

    async def test_html_content_type_rejected(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Type": "text/html; charset=utf-8"})

        assert await checker_for(handler).is_image("https://example.com/page") is False

    async def test_error_status_rejected(self):
        def handler(request):
            return httpx.Response(404, headers={"Content-Type": "image/png"})

        assert await checker_for(handler).is_image("https://example.com/gone.png") is False

    async def test_network_error_is_false_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await checker_for(handler).is_image("https://example.com/a.png") is False

    async def test_relative_url_is_false(self):
        checker = ImageURLChecker()
        assert await checker.is_image("not a url") is False
        await checker.close()


def test_satisfies_protocol():
    assert isinstance(ImageURLChecker(), ImageChecker)
