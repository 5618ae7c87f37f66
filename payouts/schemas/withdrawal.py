"""Pydantic schemas for withdrawals."""

from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from earnings_calculator.types import TaxStatus
from payouts.utils.exceptions import ValidationError


class _PaymentDetailsBase(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    recipient_name: str = Field(..., min_length=2, max_length=255, description="Recipient full name")


class CardPaymentDetails(_PaymentDetailsBase):
    """Payout to a bank card."""

    method: Literal["CARD"] = "CARD"
    card_number: str = Field(..., description="Card number, 16-19 digits")

    @field_validator("card_number")
    @classmethod
    def validate_card_number(cls, v: str) -> str:
        """Strip separators and check length."""
        digits = v.replace(" ", "").replace("-", "")
        if not digits.isdigit() or not 16 <= len(digits) <= 19:
            raise ValueError("card_number must contain 16-19 digits")
        return digits


class BankAccountPaymentDetails(_PaymentDetailsBase):
    """Payout to a bank account."""

    method: Literal["BANK_ACCOUNT"] = "BANK_ACCOUNT"
    bank_account: str = Field(..., description="Settlement account, 20 digits")
    bank_name: str = Field(..., min_length=2, max_length=255, description="Bank name")
    bik: str = Field(..., description="Bank identification code, 9 digits")

    @field_validator("bank_account")
    @classmethod
    def validate_bank_account(cls, v: str) -> str:
        """Check settlement account format."""
        if not v.isdigit() or len(v) != 20:
            raise ValueError("bank_account must contain 20 digits")
        return v

    @field_validator("bik")
    @classmethod
    def validate_bik(cls, v: str) -> str:
        """Check BIK format."""
        if not v.isdigit() or len(v) != 9:
            raise ValueError("bik must contain 9 digits")
        return v


PaymentDetails = Annotated[
    CardPaymentDetails | BankAccountPaymentDetails,
    Field(discriminator="method"),
]

payment_details_adapter: TypeAdapter[CardPaymentDetails | BankAccountPaymentDetails] = (
    TypeAdapter(PaymentDetails)
)


class WithdrawalPreview(BaseModel):
    """Tax breakdown and eligibility of a prospective withdrawal."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., ge=0, description="Gross amount in kopecks")
    tax_status: TaxStatus = Field(..., description="Recipient tax status")
    tax_rate: Decimal = Field(..., ge=0, le=1, description="Withholding rate")
    tax_amount: int = Field(..., ge=0, description="Withheld tax in kopecks")
    net_amount: int = Field(..., ge=0, description="Amount paid out in kopecks")
    available_balance: int = Field(..., ge=0, description="Available balance in kopecks")
    minimum_withdrawal: int = Field(..., gt=0, description="Minimum withdrawal in kopecks")
    can_withdraw: bool = Field(..., description="Whether the request would be accepted")


class StatusStats(BaseModel):
    """Count and total of withdrawals in one status."""

    count: int = Field(..., ge=0)
    amount: int = Field(..., ge=0, description="Gross total in kopecks")


class WithdrawalStats(BaseModel):
    """Back-office withdrawal statistics."""

    pending: StatusStats
    approved: StatusStats
    processing: StatusStats
    completed_this_month: StatusStats
    completed_this_month_net: int = Field(..., ge=0, description="Net paid out this month")


def parse_payment_details(
    payment_details: CardPaymentDetails | BankAccountPaymentDetails | dict[str, Any],
) -> CardPaymentDetails | BankAccountPaymentDetails:
    """
    Validate raw payout requisites.

    Raises:
        ValidationError: Unknown method or malformed fields (error code
            invalid_payment_details, the message lists the fields)
    """
    if isinstance(payment_details, CardPaymentDetails | BankAccountPaymentDetails):
        return payment_details
    try:
        return payment_details_adapter.validate_python(payment_details)
    except PydanticValidationError as e:
        fields = sorted(
            {".".join(str(part) for part in error["loc"]) for error in e.errors()}
        )
        raise ValidationError(
            f"Некорректные платежные реквизиты: {', '.join(fields)}",
            error_code="invalid_payment_details",
        ) from e
