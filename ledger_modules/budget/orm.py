"""
SQLAlchemy ORM persistence models for the Budget module.

Responsibility
--------------
Database-backed persistence for budgets and their line items.
``BudgetProgress`` is computed and has no table.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``BudgetTracker``.  Inherits
from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* Money columns are ``MinorUnits`` (integer cents) -- NEVER float.
* Enum fields stored as String for readability and portability.
* Items belong to exactly one budget and are deleted with it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import MinorUnits, TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO, round_money


class BudgetModel(TrackedBase):
    """
    A budget for one company and one period.

    Guarantees:
        - ``period_start`` < ``period_end``.
        - ``status`` follows draft -> active -> closed, draft|active -> cancelled.
    """

    __tablename__ = "budgets"

    __table_args__ = (
        Index("idx_budget_company_status", "company_id", "status"),
        Index("idx_budget_company_period", "company_id", "period_start", "period_end"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    budget_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    budgeted_amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Scope
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    items: Mapped[list["BudgetItemModel"]] = relationship(
        "BudgetItemModel",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetItemModel.position",
        lazy="selectin",
    )

    @property
    def allocated_amount(self) -> Decimal:
        """Sum of item line totals."""
        return round_money(sum((item.line_total for item in self.items), ZERO))

    @property
    def has_scope(self) -> bool:
        return any((self.account_id, self.project_id, self.department_id))

    def __repr__(self) -> str:
        return f"<BudgetModel {self.name} {self.period_start}..{self.period_end} [{self.status}]>"


class BudgetItemModel(TrackedBase):
    """A planned line item inside a budget."""

    __tablename__ = "budget_items"

    __table_args__ = (
        Index("idx_budget_item_budget", "budget_id", "position"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("budgets.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    budget: Mapped[BudgetModel] = relationship(
        "BudgetModel",
        back_populates="items",
    )

    @property
    def line_total(self) -> Decimal:
        return round_money(self.unit_price * self.quantity)

    def __repr__(self) -> str:
        return f"<BudgetItemModel {self.name} {self.quantity} x {self.unit_price}>"
