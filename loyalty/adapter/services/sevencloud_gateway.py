"""SevenCloud point-of-sale gateway

httpx client for the vending platform's admin API. Every response is wrapped
in an envelope ``{code, message, success, data}``; anything other than a
successful envelope is an UpstreamUnavailable so callers can retry.
"""

import hashlib
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from loyalty.app.services.order_gateway import (
    CouponPage,
    CouponRecord,
    OrderGateway,
    OrderPage,
    OrderRecord,
)
from loyalty.domain.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

LOGIN_PATH = "/SZWL-SERVER/tAdmin/loginSys"
ORDERS_PATH = "/ORDER-SERVER/tOrder/pageOrder"
COUPONS_PATH = "/SZWL-SERVER/tPromoCode/list"
MINT_PATH = "/SZWL-SERVER/tPromoCode/add"

SESSION_EXPIRED_CODES = {"401", "403", "1001"}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

R = TypeVar("R", bound=BaseModel)


def password_hash(password: str) -> str:
    return hashlib.md5(password.encode("utf-8")).hexdigest()


def parse_records(raw: List[Any], model: Type[R], kind: str) -> Tuple[List[R], int]:
    """Validate records one by one; malformed ones are skipped and counted"""
    records: List[R] = []
    skipped = 0
    for item in raw or []:
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError as e:
            skipped += 1
            logger.warning(f"Skipping malformed {kind} record: {e.errors()[0].get('msg')} ({item!r:.200})")
    return records, skipped


class SevenCloudGateway(OrderGateway):
    """
    SevenCloud admin API client

    Logs in lazily and again after the platform reports an expired session.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username
        self.password = password
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self.token: Optional[str] = None
        self.admin_id: Optional[int] = None
        self.admin_name: Optional[str] = None

    async def login(self) -> str:
        data = await self._request(
            "POST",
            LOGIN_PATH,
            json={"username": self.username, "password": password_hash(self.password)},
            authenticated=False,
        )
        if not isinstance(data, dict) or not data.get("currentToken"):
            raise UpstreamUnavailable("SevenCloud login returned no session token")

        self.token = data["currentToken"]
        self.admin_id = data.get("id")
        self.admin_name = data.get("name")
        logger.info(f"Logged in to SevenCloud as admin {self.admin_id}")
        return self.token

    async def list_orders(self, start: datetime, end: datetime, page: int, page_size: int) -> OrderPage:
        await self._ensure_session()
        params = {
            "adminId": str(self.admin_id),
            "userName": self.admin_name or "",
            "dateType": "0",
            "startDate": start.strftime(DATE_FORMAT),
            "endDate": end.strftime(DATE_FORMAT),
            "current": str(page),
            "size": str(page_size),
            "status": "1",
            "chartType": "day",
        }
        data = await self._request("GET", ORDERS_PATH, params=params)
        records, skipped = parse_records(self._page_records(data), OrderRecord, "order")
        return OrderPage(records=records, total_pages=int(data.get("pages") or 0), skipped_records=skipped)

    async def list_discount_codes(self, used_filter: Optional[bool], page: int, page_size: int) -> CouponPage:
        await self._ensure_session()
        body: Dict[str, Any] = {"adminId": self.admin_id, "current": page, "size": page_size}
        if used_filter is not None:
            body["isUse"] = "1" if used_filter else "0"

        data = await self._request("POST", COUPONS_PATH, json=body)
        records, skipped = parse_records(self._page_records(data), CouponRecord, "discount code")
        return CouponPage(records=records, total_pages=int(data.get("pages") or 0), skipped_records=skipped)

    async def mint_discount_code(self, code: str, amount: int, expire_months: int) -> Optional[str]:
        await self._ensure_session()
        params = {
            "addMode": "2",
            "codeNum": code,
            "number": "1",
            "month": str(expire_months),
            "type": "1",
            "discount": str(Decimal(amount) / 100),
            "frpCode": "WEIXIN_NATIVE",
            "adminId": str(self.admin_id),
        }
        data = await self._request("GET", MINT_PATH, params=params)
        return str(data) if data not in (None, "") else None

    async def close(self) -> None:
        await self.client.aclose()

    async def _ensure_session(self) -> None:
        if self.token is None or self.admin_id is None:
            await self.login()

    def _page_records(self, data: Any) -> List[Any]:
        if not isinstance(data, dict):
            raise UpstreamUnavailable("SevenCloud returned an empty page")
        return data.get("records") or []

    async def _request(self, method: str, path: str, authenticated: bool = True, **kwargs) -> Any:
        headers = {"Authorization": self.token} if authenticated and self.token else {}
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"SevenCloud {path} request failed: {e}") from e

        if response.status_code in (401, 403):
            self._drop_session()
            raise UpstreamUnavailable(f"SevenCloud session rejected ({response.status_code})")
        if response.status_code >= 400:
            raise UpstreamUnavailable(f"SevenCloud {path} returned HTTP {response.status_code}")

        try:
            envelope = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"SevenCloud {path} returned invalid JSON") from e

        if not isinstance(envelope, dict):
            raise UpstreamUnavailable(f"SevenCloud {path} returned an unexpected payload")

        if not envelope.get("success"):
            if str(envelope.get("code")) in SESSION_EXPIRED_CODES:
                self._drop_session()
            raise UpstreamUnavailable(
                f"SevenCloud {path} failed: {envelope.get('code')} {envelope.get('message')}",
                {"upstream_code": envelope.get("code")},
            )
        return envelope.get("data")

    def _drop_session(self) -> None:
        self.token = None
        self.admin_id = None
