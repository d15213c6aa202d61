"""Unit tests for PaymentPreferencesService."""

from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from settlement.schemas.payment_preferences import PaymentPreferencesUpdate
from settlement.services.payment_preferences_service import (
    PaymentPreferencesService,
    default_preferences,
    method_block,
)


def _response(data: object) -> MagicMock:
    response = MagicMock()
    response.data = data
    return response


def _fetch_chain(client: MagicMock) -> MagicMock:
    return client.table.return_value.select.return_value.eq.return_value.eq.return_value.maybe_single.return_value.execute


class TestDefaults:
    """Tests for default preference documents."""

    def test_vendor_defaults_to_mobile_money(self) -> None:
        prefs = default_preferences("vendor", "vendor-1")

        assert prefs["default_payment_method"] == "mobileMoney"
        assert prefs["mobile_money"] == {"enabled": False}
        assert prefs["is_verified"] is False

    def test_admin_defaults_to_bank_account(self) -> None:
        assert default_preferences("admin", "admin-1")["default_payment_method"] == "bankAccount"

    def test_method_block_by_key(self) -> None:
        prefs = {"crypto_wallet": {"enabled": True, "network": "polygon"}}

        assert method_block(prefs, "cryptoWallet")["network"] == "polygon"
        assert method_block(prefs, "westernUnion") == {}


class TestGetPreferences:
    """Tests for reading preferences."""

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_missing_row_returns_unsaved_default(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        _fetch_chain(client).return_value = _response(None)

        service = PaymentPreferencesService()
        prefs = await service.get_preferences("vendor", "vendor-1")

        assert prefs["payee_id"] == "vendor-1"
        client.table.return_value.insert.assert_not_called()

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_get_or_create_inserts_default(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        _fetch_chain(client).return_value = _response(None)
        client.table.return_value.insert.return_value.execute.return_value = _response(
            [{"payee_type": "admin", "payee_id": "admin-1", "default_payment_method": "bankAccount"}]
        )

        service = PaymentPreferencesService()
        prefs = await service.get_or_create("admin", "admin-1")

        assert prefs["default_payment_method"] == "bankAccount"
        inserted = client.table.return_value.insert.call_args[0][0]
        assert inserted["payee_type"] == "admin"

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_get_or_create_concurrent_insert_rereads(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        stored = {"payee_type": "vendor", "payee_id": "vendor-1", "default_payment_method": "paypal"}
        _fetch_chain(client).side_effect = [_response(None), _response(stored)]
        client.table.return_value.insert.return_value.execute.side_effect = APIError(
            {"message": "duplicate key value", "code": "23505"}
        )

        service = PaymentPreferencesService()

        assert await service.get_or_create("vendor", "vendor-1") == stored

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_get_or_create_other_errors_propagate(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        _fetch_chain(client).return_value = _response(None)
        client.table.return_value.insert.return_value.execute.side_effect = APIError(
            {"message": "permission denied", "code": "42501"}
        )

        service = PaymentPreferencesService()
        with pytest.raises(APIError):
            await service.get_or_create("vendor", "vendor-1")


class TestUpdatePreferences:
    """Tests for PaymentPreferencesService.update_preferences."""

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_merges_method_block(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        _fetch_chain(client).return_value = _response(
            {
                "payee_type": "vendor",
                "payee_id": "vendor-1",
                "mobile_money": {"enabled": False, "provider": "mtn", "phone_number": "+250788123456"},
            }
        )
        client.table.return_value.update.return_value.eq.return_value.eq.return_value.execute.return_value = _response(
            [{"payee_id": "vendor-1"}]
        )

        service = PaymentPreferencesService()
        await service.update_preferences("vendor", "vendor-1", {"mobile_money": {"enabled": True}})

        payload = client.table.return_value.update.call_args[0][0]
        assert payload["mobile_money"] == {"enabled": True, "provider": "mtn", "phone_number": "+250788123456"}

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_identity_fields_are_not_updatable(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        current = {"payee_type": "vendor", "payee_id": "vendor-1"}
        _fetch_chain(client).return_value = _response(current)

        service = PaymentPreferencesService()
        result = await service.update_preferences(
            "vendor", "vendor-1", {"payee_id": "vendor-2", "payee_type": "admin", "is_verified": True}
        )

        assert result == current
        client.table.return_value.update.assert_not_called()

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_unknown_default_method_rejected(self, mock_supabase: MagicMock) -> None:
        service = PaymentPreferencesService()

        with pytest.raises(ValueError, match="Unknown payment method"):
            await service.update_preferences("vendor", "vendor-1", {"default_payment_method": "cheque"})

    @pytest.mark.asyncio
    @patch("settlement.services.payment_preferences_service.get_supabase_client")
    async def test_schema_updates_drop_unset_fields(self, mock_supabase: MagicMock) -> None:
        client = mock_supabase.return_value
        _fetch_chain(client).return_value = _response({"payee_type": "vendor", "payee_id": "vendor-1"})
        client.table.return_value.update.return_value.eq.return_value.eq.return_value.execute.return_value = _response([])

        update = PaymentPreferencesUpdate(
            paypal={"enabled": True, "email": "vendor@example.com"},
            default_payment_method="paypal",
        )
        service = PaymentPreferencesService()
        result = await service.update_preferences("vendor", "vendor-1", update.to_updates())

        payload = client.table.return_value.update.call_args[0][0]
        assert payload == {
            "paypal": {"enabled": True, "email": "vendor@example.com"},
            "default_payment_method": "paypal",
        }
        assert result["default_payment_method"] == "paypal"
