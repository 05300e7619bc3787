# backend/app/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, Field, ConfigDict, model_validator


PaymentMethod = Literal["cash", "gcash", "deposit_application"]
ManualPaymentMethod = Literal["cash", "gcash"]


# -------------------- Branches / Rooms --------------------

class BranchCreate(BaseModel):
    name: str
    address: Optional[str] = None
    electricity_rate: float = Field(gt=0)
    water_rate: float = Field(gt=0)


class BranchUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    electricity_rate: Optional[float] = Field(default=None, gt=0)
    water_rate: Optional[float] = Field(default=None, gt=0)


class BranchOut(BranchCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    branch_id: int
    room_number: str
    monthly_rent: float = Field(gt=0)


class RoomOut(RoomCreate):
    id: int
    is_occupied: bool
    model_config = ConfigDict(from_attributes=True)


# -------------------- Tenants --------------------

class TenantMoveIn(BaseModel):
    full_name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    room_id: int
    rent_start_date: date
    initial_electricity_reading: float = Field(default=0.0, ge=0)


class TenantOut(BaseModel):
    id: int
    full_name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    branch_id: int
    room_id: int
    rent_start_date: date
    initial_electricity_reading: float
    contract_start_date: date
    contract_end_date: date
    advance_payment: float
    security_deposit: float
    is_active: bool
    move_out_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class MoveOutRequest(BaseModel):
    move_out_date: date
    final_electricity_reading: Optional[float] = Field(default=None, ge=0)
    final_water_amount: Optional[float] = Field(default=None, ge=0)
    extra_fees: float = Field(default=0.0, ge=0)
    extra_fee_description: Optional[str] = None
    is_room_transfer: bool = False


class BillingPeriodOut(BaseModel):
    start: date
    end: date
    cycle_number: int
    total_days: int
    days_occupied: Optional[int] = None


class DepositApplicationOut(BaseModel):
    available_amount: float
    applied_amount: float
    forfeited_amount: float
    refund_amount: float

    model_config = ConfigDict(from_attributes=True)


class SettlementBreakdownOut(BaseModel):
    prorated_rent: float
    electricity_charges: float
    water_charges: float
    extra_fees: float
    outstanding_balance: float
    total_before_deposits: float


class SettlementPreviewOut(BaseModel):
    tenant_id: int
    fully_paid_bills: int
    previous_electricity_reading: float
    present_electricity_reading: float
    billing_period: BillingPeriodOut
    breakdown: SettlementBreakdownOut
    deposit_application: DepositApplicationOut
    final_total: float
    outcome: Literal["due", "settled", "refund"]
    next_step: Literal["process_refund", "collect_payment", "complete_move_out"]


class MoveOutResultOut(SettlementPreviewOut):
    final_bill_id: int


# -------------------- Bills --------------------

class BillGenerate(BaseModel):
    tenant_id: int
    present_electricity_reading: float = Field(ge=0)
    present_reading_date: Optional[date] = None
    extra_fee: float = Field(default=0.0, ge=0)
    extra_fee_description: Optional[str] = None


class BillEdit(BaseModel):
    present_electricity_reading: Optional[float] = Field(default=None, ge=0)
    present_reading_date: Optional[date] = None
    water_amount: Optional[float] = Field(default=None, ge=0)
    extra_fee: Optional[float] = Field(default=None, ge=0)
    extra_fee_description: Optional[str] = None
    edit_reason: Optional[str] = None
    allow_fully_paid_edit: bool = False

    @model_validator(mode="after")
    def _something_to_edit(self):
        fields = (
            self.present_electricity_reading,
            self.present_reading_date,
            self.water_amount,
            self.extra_fee,
            self.extra_fee_description,
        )
        if all(v is None for v in fields):
            raise ValueError("bill edit must change at least one field")
        return self


class PaymentComponentOut(BaseModel):
    component_type: str
    amount: float
    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: int
    bill_id: int
    tenant_id: int
    amount: float
    payment_date: date
    payment_method: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    components: List[PaymentComponentOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class BillOut(BaseModel):
    id: int
    tenant_id: int
    branch_id: int
    room_id: int

    billing_period_start: date
    billing_period_end: date
    due_date: date

    previous_electricity_reading: float
    present_electricity_reading: float
    present_reading_date: Optional[date] = None
    electricity_consumption: float

    electricity_amount: float
    water_amount: float
    monthly_rent_amount: float
    extra_fee: float
    extra_fee_description: Optional[str] = None
    penalty_amount: float

    total_amount_due: float
    amount_paid: float
    status: str
    is_final_bill: bool
    is_room_transfer: bool = False

    advance_payment: float
    security_deposit: float
    applied_advance_payment: float
    applied_security_deposit: float
    forfeited_amount: float
    refund_amount: float
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PenaltyRunOut(BaseModel):
    processed: int
    penalty_percentage: float
    bill_ids: List[int] = Field(default_factory=list)


# -------------------- Payments --------------------

class PaymentCreate(BaseModel):
    bill_id: int
    amount_paid: float = Field(gt=0)
    payment_date: date
    payment_method: ManualPaymentMethod
    reference_number: Optional[str] = None
    notes: Optional[str] = None


# -------------------- Settings / Reports --------------------

class SettingUpdate(BaseModel):
    key: str
    value: str


class SettingsBatchIn(BaseModel):
    updates: List[SettingUpdate]


class ExpenseCreate(BaseModel):
    branch_id: Optional[int] = None
    amount: float = Field(gt=0)
    expense_date: date
    category: str = "other"
    description: Optional[str] = None


class ExpenseOut(ExpenseCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class MonthlyReportOut(BaseModel):
    month: str
    branch_id: Optional[int] = None
    collected_by_component: dict[str, float]
    total_collected: float
    deposit_applications: float
    forfeited_deposits: float
    refunds: float
    company_expenses: float
    total_income: float
    total_expenses: float
    profit_loss: float


class YearlyReportOut(BaseModel):
    year: int
    branch_id: Optional[int] = None
    months: list[MonthlyReportOut]
    total_income: float
    total_expenses: float
    profit_loss: float
    bill_count: int
    final_bill_count: int
    bills_by_status: dict[str, int]
    total_billed: float
    total_outstanding: float
    new_tenants: int
    moved_out_tenants: int


class AuditEventOut(BaseModel):
    id: int
    actor_email: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    before_json: Optional[str] = None
    after_json: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
