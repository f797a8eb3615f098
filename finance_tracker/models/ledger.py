"""
Core Data Models for Finance Tracker

These models define the strict schemas for all ledger data.
They are designed to:
1. Enforce field constraints at runtime (positive amounts, non-empty titles)
2. Serialize to the same JSON shape used by persisted state and backups
3. Be immutable, so a change is always a full replacement

DESIGN DECISION: Amounts are floats. Both the persisted key/value state
and the backup document carry them as JSON numbers, and currency
rebasing is specified with a floating-point tolerance.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def epoch_ms(moment: datetime) -> int:
    """Convert a datetime (naive = local time) to epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to a naive local datetime."""
    return datetime.fromtimestamp(value / 1000)


def now_ms() -> int:
    return epoch_ms(datetime.now())


# =============================================================================
# ENUMS
# =============================================================================

class TxType(str, Enum):
    """Kind of a transaction or category. Values are the wire strings."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class BudgetState(str, Enum):
    """
    Outcome of a budget evaluation.

    UNSET is a normal state (no budget configured), not an error.
    """
    UNSET = "unset"
    OK = "ok"
    EXCEEDED = "exceeded"


class NotificationPriority(str, Enum):
    """Priority hint handed to the notification sink."""
    LOW = "low"
    DEFAULT = "default"
    HIGH = "high"


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    The amount is denominated in whatever currency the ledger used when
    it was written. The category is a plain name reference and may
    point at a category that no longer exists.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Unique transaction ID, generated at creation"
    )
    title: str = Field(
        ...,
        min_length=1,
        description="Short description shown in lists"
    )
    amount: float = Field(
        ...,
        gt=0,
        description="Positive amount in the ledger's currency"
    )
    category: str = Field(
        default="",
        description="Category name (reference by name only)"
    )
    type: TxType
    date: int = Field(
        default_factory=now_ms,
        description="When the transaction happened (epoch milliseconds)"
    )
    note: str = Field(
        default="",
        description="Optional free text"
    )

    @field_validator('note', mode='before')
    @classmethod
    def none_note_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @property
    def occurred_at(self) -> datetime:
        return from_epoch_ms(self.date)

    @property
    def is_expense(self) -> bool:
        return self.type == TxType.EXPENSE


class Category(BaseModel):
    """
    A transaction category.

    (name, type) pairs are unique within a ledger; the emoji is a
    display glyph only.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name"
    )
    type: TxType
    emoji: str = Field(
        default="",
        description="Optional display glyph"
    )

    @field_validator('emoji', mode='before')
    @classmethod
    def none_emoji_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    def same_key(self, other: "Category") -> bool:
        return self.name == other.name and self.type == other.type


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(name="Salary", type=TxType.INCOME, emoji="💰"),
    Category(name="Gifts", type=TxType.INCOME, emoji="🎁"),
    Category(name="Food", type=TxType.EXPENSE, emoji="🍔"),
    Category(name="Transport", type=TxType.EXPENSE, emoji="🚗"),
    Category(name="Entertainment", type=TxType.EXPENSE, emoji="🎬"),
    Category(name="Housing", type=TxType.EXPENSE, emoji="🏠"),
    Category(name="Utilities", type=TxType.EXPENSE, emoji="💡"),
    Category(name="Healthcare", type=TxType.EXPENSE, emoji="🏥"),
)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class BudgetStatus(BaseModel):
    """Spend-versus-budget for the current calendar month."""

    spent: float = Field(
        ...,
        ge=0,
        description="Sum of this month's expenses"
    )
    budget: float = Field(
        ...,
        description="Monthly ceiling (<= 0 means unset)"
    )
    percentage: int = Field(
        ...,
        description="round(spent / budget * 100); 0 when unset, may exceed 100"
    )
    state: BudgetState
    evaluated_at: datetime = Field(
        default_factory=datetime.now
    )

    @property
    def is_exceeded(self) -> bool:
        return self.state == BudgetState.EXCEEDED

    @property
    def overrun(self) -> float:
        """How far spending is above the budget (0 when not exceeded)."""
        if self.state != BudgetState.EXCEEDED:
            return 0.0
        return self.spent - self.budget


class CategoryTotal(BaseModel):
    """Amount accumulated under one category name."""

    name: str
    amount: float
    emoji: str = ""


class MonthlySummary(BaseModel):
    """Income and expense totals for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    income: float = 0.0
    expense: float = 0.0
    expense_by_category: list[CategoryTotal] = Field(default_factory=list)
    income_by_category: list[CategoryTotal] = Field(default_factory=list)

    @property
    def balance(self) -> float:
        return self.income - self.expense


# =============================================================================
# BACKUP DOCUMENT
# =============================================================================

class BackupSnapshot(BaseModel):
    """
    Full, self-contained copy of the ledger at one instant.

    Dumped with by_alias=True this is exactly the portable backup document.
    """
    model_config = ConfigDict(populate_by_name=True)

    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    budget: float = 0.0
    currency: str = "USD"
    backup_date: int = Field(
        default_factory=now_ms,
        alias="backupDate",
        description="Creation time (epoch milliseconds)"
    )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate', 'in_use')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )
