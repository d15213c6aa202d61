"""Unit tests for AdminCommissionService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from settlement.core.exceptions import InsufficientCommissionError, InvalidRequestError
from settlement.services.admin_commission_service import AdminCommissionService
from settlement.services.payout_methods import PayoutResult


def _response(data: object) -> MagicMock:
    response = MagicMock()
    response.data = data
    return response


PAID_OUT_ORDERS = [
    {"id": "o-1", "items": [{"vendor_id": "v-1", "price": 100, "quantity": 1}]},
    {"id": "o-2", "items": [{"vendor_id": "v-2", "price": "50.00", "quantity": 2}]},
]

ADMIN_WITHDRAWALS = [
    {"id": 1, "transaction_id": "bank_1_a", "amount": "5.00", "status": "pending_manual"},
    {"id": 2, "transaction_id": "bank_2_b", "amount": "3.00", "status": "pending_manual"},
    {"id": 3, "transaction_id": "bank_2_b", "amount": "3.00", "status": "failed"},
    {"id": 4, "transaction_id": None, "amount": "7.00", "status": "failed"},
]


@pytest.fixture
def settings_service() -> MagicMock:
    service = MagicMock()
    service.get_commission_rate = AsyncMock(return_value=Decimal("0.10"))
    return service


@pytest.fixture
def payout_service() -> MagicMock:
    service = MagicMock()
    service.process_payout = AsyncMock(
        return_value=PayoutResult(
            status="pending_manual",
            method="bankAccount",
            amount=Decimal("10.00"),
            currency="RWF",
            transaction_id="bank_3_c",
        )
    )
    service.get_payout_history = AsyncMock(return_value=[])
    return service


@pytest.fixture
def commission_settings() -> MagicMock:
    settings = MagicMock()
    settings.commission_currency = "RWF"
    return settings


def _wire(client: MagicMock, orders: list[dict], withdrawals: list[dict]) -> None:
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.order.return_value.range.return_value.execute.return_value = _response(
        orders
    )
    client.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value.range.return_value.execute.return_value = _response(
        withdrawals
    )


class _OrdersTable:
    """In-memory orders query that applies eq filters like PostgREST."""

    def __init__(self, rows: list[dict]) -> None:
        self.rows = rows
        self.filters: list[tuple[str, str]] = []

    def select(self, *args: object) -> "_OrdersTable":
        return self

    def eq(self, column: str, value: str) -> "_OrdersTable":
        self.filters.append((column, value))
        return self

    def order(self, *args: object) -> "_OrdersTable":
        return self

    def range(self, *args: object) -> "_OrdersTable":
        return self

    def execute(self) -> MagicMock:
        def column_value(row: dict, column: str) -> object:
            if column.startswith("metadata->>"):
                value = (row.get("metadata") or {}).get(column.removeprefix("metadata->>"))
                return None if value is None else str(value).lower()
            return row.get(column)

        return _response([row for row in self.rows if all(column_value(row, c) == v for c, v in self.filters)])


class TestCommissionTotals:
    """Tests for commission totals and the available balance."""

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_counts_only_paid_out_orders(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        client = mock_supabase.return_value
        _wire(client, PAID_OUT_ORDERS, [])

        service = AdminCommissionService(settings_service, payout_service)
        total = await service.calculate_total_commission()

        assert total["total_revenue"] == 200.0
        assert total["total_commission"] == 20.0
        assert total["order_count"] == 2
        assert total["currency"] == "RWF"
        orders_query = client.table.return_value.select.return_value.eq
        orders_query.assert_any_call("status", "completed")
        orders_query.return_value.eq.assert_any_call("metadata->>vendorPayoutProcessed", "true")

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_withdrawn_uses_latest_row_per_transaction(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        _wire(mock_supabase.return_value, [], ADMIN_WITHDRAWALS)

        service = AdminCommissionService(settings_service, payout_service)

        assert await service.get_withdrawn_amount() == Decimal("5.00")

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_summary_reports_available_balance(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        _wire(mock_supabase.return_value, PAID_OUT_ORDERS, ADMIN_WITHDRAWALS)

        service = AdminCommissionService(settings_service, payout_service)
        summary = await service.get_commission_summary()

        assert summary["total_commission"] == 20.0
        assert summary["withdrawn"] == 5.0
        assert summary["available"] == 15.0

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_partially_paid_order_holds_no_commission(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        rows = [
            {
                "id": "o-1",
                "status": "completed",
                "metadata": {"vendorPayoutProcessed": True, "vendorPayouts": [{"item_index": 0}]},
                "items": [{"vendor_id": "v-1", "price": 100, "quantity": 1}],
            },
            {
                # One vendor paid, the other's payout method was disabled
                "id": "o-2",
                "status": "completed",
                "metadata": {
                    "vendorPayouts": [{"item_index": 0}],
                    "payoutErrors": [{"item_index": 1, "error": "Preferred payment method (mobileMoney) is not enabled"}],
                },
                "items": [
                    {"vendor_id": "v-1", "price": 50, "quantity": 1},
                    {"vendor_id": "v-2", "price": 500, "quantity": 1},
                ],
            },
        ]
        mock_supabase.return_value.table.side_effect = lambda name: _OrdersTable(rows)

        service = AdminCommissionService(settings_service, payout_service)
        total = await service.calculate_total_commission()

        assert total["order_count"] == 1
        assert total["total_commission"] == 10.0

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_missing_quantity_counts_as_one_unit(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        _wire(mock_supabase.return_value, [{"id": "o-1", "items": [{"vendor_id": "v-1", "price": 40}]}], [])

        service = AdminCommissionService(settings_service, payout_service)
        total = await service.calculate_total_commission()

        assert total["total_revenue"] == 40.0
        assert total["total_commission"] == 4.0


class TestWithdrawCommission:
    """Tests for AdminCommissionService.withdraw_commission."""

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_withdraws_within_balance(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        _wire(mock_supabase.return_value, PAID_OUT_ORDERS, ADMIN_WITHDRAWALS)

        service = AdminCommissionService(settings_service, payout_service)
        result = await service.withdraw_commission("admin-1", "10", "rwf", {"note": "monthly"}, admin_name="Ops")

        assert result.transaction_id == "bank_3_c"
        payee, amount, currency, details = payout_service.process_payout.call_args[0]
        assert payee.payee_type == "admin"
        assert payee.payee_id == "admin-1"
        assert amount == Decimal("10.00")
        assert currency == "RWF"
        assert details == {"note": "monthly", "type": "commission_withdrawal"}

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_rejects_amount_above_balance(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        _wire(mock_supabase.return_value, PAID_OUT_ORDERS, ADMIN_WITHDRAWALS)

        service = AdminCommissionService(settings_service, payout_service)
        with pytest.raises(InsufficientCommissionError) as exc_info:
            await service.withdraw_commission("admin-1", "15.01", "RWF")

        assert exc_info.value.details == {"requested": 15.01, "available": 15.0}
        payout_service.process_payout.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_rejects_other_currency(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings

        service = AdminCommissionService(settings_service, payout_service)
        with pytest.raises(InvalidRequestError, match="RWF"):
            await service.withdraw_commission("admin-1", "10", "USD")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_rejects_invalid_amount(
        self,
        mock_supabase: MagicMock,
        mock_settings: MagicMock,
        amount: str,
        settings_service,
        payout_service,
        commission_settings,
    ) -> None:
        mock_settings.return_value = commission_settings

        service = AdminCommissionService(settings_service, payout_service)
        with pytest.raises(InvalidRequestError, match="Valid amount is required"):
            await service.withdraw_commission("admin-1", amount, "RWF")


class TestCommissionReport:
    """Tests for AdminCommissionService.get_commission_report."""

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_rejects_unknown_period(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings

        service = AdminCommissionService(settings_service, payout_service)
        with pytest.raises(InvalidRequestError):
            await service.get_commission_report("1y")

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_groups_by_vendor(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        client = mock_supabase.return_value
        client.table.return_value.select.return_value.eq.return_value.gte.return_value.order.return_value.range.return_value.execute.return_value = _response(
            [
                {"id": "o-1", "items": [{"vendor_id": "v-1", "price": 100, "quantity": 1}]},
                {"id": "o-2", "items": [{"vendor_id": "v-1", "price": 20, "quantity": 1}, {"product": {"vendor_id": "v-2"}, "price": 300, "quantity": 1}]},
            ]
        )
        client.table.return_value.select.return_value.in_.return_value.execute.return_value = _response(
            [{"id": "v-1", "username": "crafts", "email": "crafts@example.com"}]
        )

        service = AdminCommissionService(settings_service, payout_service)
        report = await service.get_commission_report("7d")

        assert report["period"] == "7d"
        assert report["commission_rate"] == 0.1
        assert [v["vendor_id"] for v in report["vendors"]] == ["v-2", "v-1"]
        v1 = report["vendors"][1]
        assert v1["total_orders"] == 2
        assert v1["total_revenue"] == 120.0
        assert v1["total_commission"] == 12.0
        assert v1["vendor_name"] == "crafts"
        assert report["vendors"][0]["vendor_name"] is None
        assert report["totals"] == {"total_orders": 2, "total_revenue": 420.0, "total_commission": 42.0}

    @pytest.mark.asyncio
    @patch("settlement.services.admin_commission_service.get_settings")
    @patch("settlement.services.admin_commission_service.get_supabase_client")
    async def test_counts_orders_not_items(
        self, mock_supabase: MagicMock, mock_settings: MagicMock, settings_service, payout_service, commission_settings
    ) -> None:
        mock_settings.return_value = commission_settings
        client = mock_supabase.return_value
        client.table.return_value.select.return_value.eq.return_value.gte.return_value.order.return_value.range.return_value.execute.return_value = _response(
            [
                {
                    "id": "o-1",
                    "items": [
                        {"vendor_id": "v-1", "price": 30, "quantity": 1},
                        {"vendor_id": "v-1", "price": 20, "quantity": 2},
                    ],
                },
            ]
        )
        client.table.return_value.select.return_value.in_.return_value.execute.return_value = _response([])

        service = AdminCommissionService(settings_service, payout_service)
        report = await service.get_commission_report("30d")

        assert report["vendors"][0]["total_orders"] == 1
        assert report["vendors"][0]["total_revenue"] == 70.0
        assert report["totals"]["total_orders"] == 1
