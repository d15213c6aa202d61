"""Integration tests for vendor payment preference and payout routes."""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from settlement.services.payment_preferences_service import PaymentPreferencesService
from settlement.services.payout_service import PayoutService

VENDOR_ID = "660e8400-e29b-41d4-a716-446655440001"


def _response(data: object) -> MagicMock:
    response = MagicMock()
    response.data = data
    return response


class TestVendorPaymentPreferences:
    """Tests for /api/marketplace/vendors/me/payment-preferences."""

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.get("/api/marketplace/vendors/me/payment-preferences")

        assert response.status_code == 401

    def test_unsaved_default_returned(self, vendor_client: TestClient, mock_supabase_client: MagicMock) -> None:
        mock_supabase_client.table.return_value.select.return_value.eq.return_value.eq.return_value.maybe_single.return_value.execute.return_value = _response(
            None
        )

        response = vendor_client.get("/api/marketplace/vendors/me/payment-preferences")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["payee_id"] == VENDOR_ID
        assert data["default_payment_method"] == "mobileMoney"
        assert data["mobile_money"] == {"enabled": False}
        mock_supabase_client.table.return_value.insert.assert_not_called()

    def test_update_merges_mobile_money_block(
        self, vendor_client: TestClient, mock_supabase_client: MagicMock
    ) -> None:
        stored = {
            "payee_type": "vendor",
            "payee_id": VENDOR_ID,
            "mobile_money": {"enabled": False, "provider": "mtn"},
            "default_payment_method": "mobileMoney",
        }
        mock_supabase_client.table.return_value.select.return_value.eq.return_value.eq.return_value.maybe_single.return_value.execute.return_value = _response(
            stored
        )
        mock_supabase_client.table.return_value.update.return_value.eq.return_value.eq.return_value.execute.return_value = _response(
            []
        )

        response = vendor_client.put(
            "/api/marketplace/vendors/me/payment-preferences",
            json={"mobile_money": {"enabled": True, "phone_number": "+250788123456", "country": "Rwanda"}},
        )

        assert response.status_code == 200
        payload = mock_supabase_client.table.return_value.update.call_args[0][0]
        assert payload == {
            "mobile_money": {"enabled": True, "provider": "mtn", "phone_number": "+250788123456", "country": "Rwanda"}
        }
        assert response.json()["data"]["mobile_money"]["enabled"] is True

    def test_invalid_phone_number_rejected(self, vendor_client: TestClient) -> None:
        response = vendor_client.put(
            "/api/marketplace/vendors/me/payment-preferences",
            json={"mobile_money": {"enabled": True, "phone_number": "call me"}},
        )

        assert response.status_code == 422

    def test_unknown_default_method_rejected(self, vendor_client: TestClient) -> None:
        response = vendor_client.put(
            "/api/marketplace/vendors/me/payment-preferences",
            json={"default_payment_method": "cheque"},
        )

        assert response.status_code == 422

    @patch.object(PaymentPreferencesService, "update_preferences", new_callable=AsyncMock)
    def test_service_value_error_returns_400(self, mock_update: AsyncMock, vendor_client: TestClient) -> None:
        mock_update.side_effect = ValueError("Unknown payment method: cheque")

        response = vendor_client.put(
            "/api/marketplace/vendors/me/payment-preferences",
            json={"payout_schedule": "weekly"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["message"] == "Unknown payment method: cheque"


class TestVendorPayouts:
    """Tests for /api/marketplace/vendors/me/payouts."""

    @patch.object(PayoutService, "get_payout_history", new_callable=AsyncMock)
    def test_lists_own_payouts(self, mock_history: AsyncMock, vendor_client: TestClient) -> None:
        mock_history.return_value = [
            {
                "id": 3,
                "payee_type": "vendor",
                "payee_id": VENDOR_ID,
                "amount": 45.5,
                "currency": "RWF",
                "method": "mobileMoney",
                "status": "completed",
                "transaction_id": "mm_1760870400000_abcdefgh",
            }
        ]

        response = vendor_client.get("/api/marketplace/vendors/me/payouts", params={"status": "completed"})

        assert response.status_code == 200
        assert response.json()["data"][0]["amount"] == 45.5
        mock_history.assert_awaited_once_with("vendor", VENDOR_ID, limit=50, status="completed")
