"""Unit tests for SevenCloudGateway

Runs the client against an httpx.MockTransport that imitates the platform's
envelope format.
"""

import json
from datetime import datetime

import httpx
import pytest

from loyalty.adapter.services.sevencloud_gateway import (
    COUPONS_PATH,
    LOGIN_PATH,
    MINT_PATH,
    ORDERS_PATH,
    SevenCloudGateway,
    password_hash,
)
from loyalty.domain.errors import UpstreamUnavailable


def envelope(data, success=True, code="200", message="ok"):
    return httpx.Response(200, json={"code": code, "message": message, "success": success, "data": data})


LOGIN_OK = {"currentToken": "tok-1", "id": 77, "name": "admin"}


class FakePlatform:
    """Routes requests by path and records them"""

    def __init__(self):
        self.requests = []
        self.routes = {LOGIN_PATH: [envelope(LOGIN_OK)]}

    def queue(self, path, *responses):
        self.routes.setdefault(path, []).extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responses = self.routes.get(request.url.path)
        if not responses:
            return httpx.Response(404)
        return responses.pop(0) if len(responses) > 1 else responses[0]


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def gateway(platform):
    return SevenCloudGateway(
        "https://sevencloud.test",
        "admin",
        "secret",
        transport=httpx.MockTransport(platform),
    )


def test_password_is_md5_hex():
    assert password_hash("secret") == "5ebe2294ecd0e0f08eab7690d2a6ee69"


@pytest.mark.asyncio
class TestSevenCloudGateway:

    async def test_login_posts_hashed_password(self, gateway, platform):
        token = await gateway.login()

        assert token == "tok-1"
        assert gateway.admin_id == 77
        body = json.loads(platform.requests[0].content)
        assert body == {"username": "admin", "password": password_hash("secret")}

    async def test_list_orders_logs_in_and_parses_page(self, gateway, platform):
        """
        Given a page with one valid and one malformed order
        When orders are listed
        Then the valid order is parsed and the malformed one counted as skipped
        """
        platform.queue(
            ORDERS_PATH,
            envelope({
                "pages": 3,
                "records": [
                    {"id": 1001, "createDate": 1718000000000, "memberCode": 1000000001,
                     "price": 3.5, "productName": "Gummy", "status": 1, "extra": "ignored"},
                    {"createDate": "not-a-date"},
                ],
            }),
        )

        page = await gateway.list_orders(datetime(2024, 6, 1), datetime(2024, 6, 2), 1, 100)

        assert page.total_pages == 3
        assert page.skipped_records == 1
        assert len(page.records) == 1
        order = page.records[0]
        assert order.id == 1001
        assert order.member_code == "1000000001"
        assert order.price_cents == 350

        orders_request = platform.requests[1]
        assert orders_request.headers["Authorization"] == "tok-1"
        assert orders_request.url.params["startDate"] == "2024-06-01 00:00:00"
        assert orders_request.url.params["current"] == "1"

    async def test_list_discount_codes(self, gateway, platform):
        platform.queue(
            COUPONS_PATH,
            envelope({"pages": 1, "records": [{"id": 5, "code": "123456", "isUse": 1}]}),
        )

        page = await gateway.list_discount_codes(True, 1, 20)

        assert page.records[0].code == "123456"
        assert page.records[0].is_used is True
        body = json.loads(platform.requests[1].content)
        assert body["isUse"] == "1"
        assert body["adminId"] == 77

    async def test_mint_sends_dollar_amount(self, gateway, platform):
        platform.queue(MINT_PATH, envelope(9001))

        external_id = await gateway.mint_discount_code("654321", 800, 1)

        assert external_id == "9001"
        params = platform.requests[1].url.params
        assert params["codeNum"] == "654321"
        assert params["discount"] == "8"
        assert params["month"] == "1"

    async def test_expired_session_forces_relogin(self, gateway, platform):
        """
        Given the platform reports an expired session
        When the call fails and is made again
        Then the gateway logs in a second time
        """
        platform.queue(
            ORDERS_PATH,
            envelope(None, success=False, code="1001", message="token expired"),
            envelope({"pages": 0, "records": []}),
        )

        with pytest.raises(UpstreamUnavailable):
            await gateway.list_orders(datetime(2024, 6, 1), datetime(2024, 6, 2), 1, 100)
        assert gateway.token is None

        page = await gateway.list_orders(datetime(2024, 6, 1), datetime(2024, 6, 2), 1, 100)

        assert page.records == []
        logins = [r for r in platform.requests if r.url.path == LOGIN_PATH]
        assert len(logins) == 2

    async def test_http_error_is_upstream_unavailable(self, gateway, platform):
        platform.queue(ORDERS_PATH, httpx.Response(502))

        with pytest.raises(UpstreamUnavailable):
            await gateway.list_orders(datetime(2024, 6, 1), datetime(2024, 6, 2), 1, 100)

    async def test_invalid_json_is_upstream_unavailable(self, gateway, platform):
        platform.queue(ORDERS_PATH, httpx.Response(200, content=b"<html>"))

        with pytest.raises(UpstreamUnavailable):
            await gateway.list_orders(datetime(2024, 6, 1), datetime(2024, 6, 2), 1, 100)
