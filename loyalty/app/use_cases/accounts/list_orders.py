"""
List Orders Use Case

Purchase history of a member as synced from the point-of-sale platform,
with the stamps and cashback each order earned.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from libs.result import Result, Return
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.external_order_repository import ExternalOrderRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound, ValidationError
from .dtos import ListOrdersResponseDTO, OrderDTO


class ListOrders:
    """
    Use case: View order history

    Orders are ordered newest first by their upstream creation time. Both
    dates are inclusive calendar days in UTC.
    """

    def __init__(self, account_repo: AccountRepository, order_repo: ExternalOrderRepository):
        self.account_repo = account_repo
        self.order_repo = order_repo

    async def execute(
        self,
        account_id: int,
        order_status: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Result[ListOrdersResponseDTO]:
        if start_date and end_date and start_date > end_date:
            return Return.err(
                to_error(
                    ValidationError(
                        f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}",
                        code="INVALID_DATE_RANGE",
                    )
                )
            )
        if not await self.account_repo.get_by_id(account_id):
            return Return.err(to_error(AccountNotFound(account_id)))

        orders, total = await self.order_repo.get_by_account_id(
            account_id,
            order_status=order_status,
            created_from=datetime.combine(start_date, time.min) if start_date else None,
            created_before=datetime.combine(end_date + timedelta(days=1), time.min) if end_date else None,
            limit=limit,
            offset=offset,
        )

        return Return.ok(
            ListOrdersResponseDTO(
                orders=[
                    OrderDTO(
                        external_id=order.external_id,
                        price=order.price,
                        product_name=order.product_name,
                        product_no=order.product_no,
                        order_status=order.order_status,
                        pay_type=order.pay_type,
                        stamps_earned=order.stamps_earned,
                        cashback_earned=order.cashback_earned,
                        external_created_at=order.external_created_at,
                    )
                    for order in orders
                ],
                total=total,
                limit=limit,
                offset=offset,
            )
        )
