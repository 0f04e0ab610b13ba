"""Data models for financial health snapshots."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetCategory(str, Enum):
    """Asset categories as stored by the client application.

    Values are the exact stored strings; matching is exact.
    """

    REAL_ESTATE = "Imóvel"
    VEHICLE = "Veículo"
    INVESTMENT = "Investimento"
    BANK_ACCOUNT = "Conta Bancária"
    EQUIPMENT = "Equipamentos"
    JEWELRY = "Joias"
    ART = "Arte"
    CRYPTO = "Cripto"
    OTHER = "Outros"


# Assets counted toward the emergency fund
LIQUID_ASSET_CATEGORIES = frozenset({
    AssetCategory.BANK_ACCOUNT.value,
    AssetCategory.INVESTMENT.value,
    AssetCategory.CRYPTO.value,
})


class HealthSnapshot(BaseModel):
    """Financial ratios for one user and one operating mode on one date."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    snapshot_date: str = Field(alias="snapshotDate")
    savings_rate_pct: float = Field(alias="savingsRatePct")
    debt_income_pct: float = Field(alias="debtIncomePct")
    months_emergency_fund: float = Field(alias="monthsEmergencyFund")
    net_worth_growth_12m: float = Field(alias="netWorthGrowth12m")
    total_income: float = Field(alias="totalIncome")
    total_expense: float = Field(alias="totalExpense")
    total_debt: float = Field(alias="totalDebt")
    total_assets: float = Field(alias="totalAssets")
    emergency_fund: float = Field(alias="emergencyFund")
    avg_monthly_expense: float = Field(alias="avgMonthlyExpense")

    def to_row(self) -> Dict[str, Any]:
        """Persisted column shape (snake_case)."""
        return self.model_dump(by_alias=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HealthSnapshot":
        fields = set(cls.model_fields.keys())
        return cls(**{k: v for k, v in row.items() if k in fields})


class UserHealthResult(BaseModel):
    """Outcome of one user's turn in a health calculation."""

    user_id: str
    success: bool
    modes_written: List[str] = []
    modes_skipped: List[str] = []
    error: Optional[str] = None


class BatchHealthResult(BaseModel):
    processed: int
    succeeded: int
    failed: int
    results: List[UserHealthResult]
