"""Payment preference Pydantic schemas for API request/response models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

MobileMoneyProvider = Literal["mtn", "airtel", "vodacom", "tigo", "orange", "ecocash", "other"]
CryptoNetwork = Literal["ethereum", "bitcoin", "polygon", "bsc", "solana", "other"]
PaymentMethodKey = Literal["mobileMoney", "bankAccount", "paypal", "cryptoWallet"]
PayoutSchedule = Literal["immediate", "daily", "weekly", "biweekly", "monthly"]

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
WALLET_PATTERN = r"^0x[a-fA-F0-9]{40}$|^[a-zA-Z0-9]{35,}$"


class MobileMoneyDetails(BaseModel):
    """Mobile money payout destination."""

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool | None = None
    provider: MobileMoneyProvider | None = None
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    country: str | None = Field(default=None, max_length=100)


class BankAccountDetails(BaseModel):
    """Bank transfer payout destination."""

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool | None = None
    account_holder_name: str | None = Field(default=None, max_length=100)
    account_number: str | None = None
    bank_name: str | None = None
    routing_number: str | None = None
    swift_code: str | None = None
    iban: str | None = None
    country: str | None = None


class PayPalDetails(BaseModel):
    """PayPal payout destination."""

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool | None = None
    email: EmailStr | None = None


class CryptoWalletDetails(BaseModel):
    """Crypto wallet payout destination."""

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool | None = None
    wallet_address: str | None = Field(default=None, pattern=WALLET_PATTERN)
    network: CryptoNetwork | None = None


class WithdrawalPreferences(BaseModel):
    """How and when commission or earnings should be withdrawn."""

    minimum_amount: float | None = Field(default=None, ge=1)
    frequency: Literal["daily", "weekly", "monthly", "manual"] | None = None


class TaxInformation(BaseModel):
    """Tax details kept with the payee's preferences."""

    tax_id: str | None = None
    tax_country: str | None = None
    tax_registration_date: str | None = None


class PaymentPreferencesUpdate(BaseModel):
    """Schema for PUT payment-preferences. Unset fields are left unchanged."""

    model_config = ConfigDict(extra="ignore")

    mobile_money: MobileMoneyDetails | None = None
    bank_account: BankAccountDetails | None = None
    paypal: PayPalDetails | None = None
    crypto_wallet: CryptoWalletDetails | None = None
    default_payment_method: PaymentMethodKey | None = None
    auto_payout_enabled: bool | None = None
    payout_schedule: PayoutSchedule | None = None
    withdrawal_preferences: WithdrawalPreferences | None = None
    payout_notifications: bool | None = None
    tax_information: TaxInformation | None = None

    def to_updates(self) -> dict[str, Any]:
        """Flatten to storage updates, dropping unset values inside blocks."""
        return self.model_dump(mode="json", exclude_none=True)


class PaymentPreferencesResponse(BaseModel):
    """Stored payment preferences for a vendor or admin."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    payee_type: str
    payee_id: str
    mobile_money: dict[str, Any] = Field(default_factory=dict)
    bank_account: dict[str, Any] = Field(default_factory=dict)
    paypal: dict[str, Any] = Field(default_factory=dict)
    crypto_wallet: dict[str, Any] = Field(default_factory=dict)
    default_payment_method: str
    auto_payout_enabled: bool | None = None
    payout_schedule: str | None = None
    withdrawal_preferences: dict[str, Any] | None = None
    payout_notifications: bool | None = None
    tax_information: dict[str, Any] | None = None
    is_verified: bool = False
