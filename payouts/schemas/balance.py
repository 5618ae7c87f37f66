"""Pydantic schemas for partner balances."""

from pydantic import BaseModel, ConfigDict, Field


class AvailableBalance(BaseModel):
    """
    Partner balance derived from commissions and withdrawals.

    All amounts are in kopecks; withdrawals are counted gross.
    available = total_earnings - pending_withdrawals - processing - withdrawn
    """

    model_config = ConfigDict(frozen=True)

    total_earnings: int = Field(..., ge=0, description="APPROVED + PAID commissions")
    pending_earnings: int = Field(..., ge=0, description="PENDING commissions")
    pending_withdrawals: int = Field(..., ge=0, description="PENDING + APPROVED withdrawals")
    processing: int = Field(..., ge=0, description="PROCESSING withdrawals")
    withdrawn: int = Field(..., ge=0, description="COMPLETED withdrawals")
    available: int = Field(..., ge=0, description="Amount that can be withdrawn now")
    minimum_withdrawal: int = Field(..., gt=0, description="Minimum withdrawal")
    deficit: int = Field(
        default=0, ge=0, description="Amount by which withdrawals exceed earnings"
    )

    @property
    def reserved(self) -> int:
        """Amount held by non-terminal withdrawals."""
        return self.pending_withdrawals + self.processing
