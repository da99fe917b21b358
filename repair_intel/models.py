from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _num(x) -> Optional[float]:
    if x is None:
        return None
    if isinstance(x, bool):
        return None
    try:
        if isinstance(x, (int, float)):
            return float(x)
        s = str(x).strip().replace("$", "").replace(",", "")
        if not s:
            return None
        return float(s)
    except ValueError:
        return None


# ---------------- Submission ----------------
class CustomerIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    property_address: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Submission(CustomerIdentity):
    payment_reference: Optional[str] = None
    filename: str = ""
    pdf_bytes: bytes = Field(default=b"", repr=False)


# ---------------- Claude estimate ----------------
class InspectionItem(BaseModel):
    section_number: str = ""
    description: str = ""

    @field_validator("section_number", "description", mode="before")
    @classmethod
    def _stringify(cls, v):
        return "" if v is None else str(v)


class RepairCategory(BaseModel):
    category_name: str = ""
    inspection_items: List[InspectionItem] = Field(default_factory=list)
    handyman_cost: float = 0
    contractor_cost: float = 0
    recommended_trade: str = ""

    @field_validator("category_name", "recommended_trade", mode="before")
    @classmethod
    def _stringify(cls, v):
        return "" if v is None else str(v)

    @field_validator("inspection_items", mode="before")
    @classmethod
    def _items_default(cls, v):
        return [] if v is None else v

    @field_validator("handyman_cost", "contractor_cost", mode="before")
    @classmethod
    def _cost(cls, v):
        if v is None:
            return 0
        n = _num(v)
        if n is None:
            raise ValueError(f"cost is not a number: {v!r}")
        if n < 0:
            raise ValueError(f"cost must be non-negative: {n}")
        return n


class CostEstimate(BaseModel):
    repair_categories: List[RepairCategory]
    termites_mentioned: bool = False
    pests_mentioned: bool = False
    rot_mentioned: bool = False

    @field_validator("termites_mentioned", "pests_mentioned", "rot_mentioned", mode="before")
    @classmethod
    def _flag_default(cls, v):
        return False if v is None else v

    @property
    def handyman_total(self) -> float:
        return sum(c.handyman_cost for c in self.repair_categories)

    @property
    def contractor_total(self) -> float:
        return sum(c.contractor_cost for c in self.repair_categories)

    @property
    def pest_lead(self) -> bool:
        return self.termites_mentioned or self.pests_mentioned


# ---------------- Persistence ----------------
class StoredRecord(BaseModel):
    id: Optional[int] = None
    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    property_address: str
    payment_id: Optional[str] = None
    payment_amount: Optional[float] = None
    report_data: str
    termites_mentioned: bool = False
    pests_mentioned: bool = False
    rot_mentioned: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_submission(
        cls,
        submission: Submission,
        estimate: CostEstimate,
        payment_amount: Optional[float] = None,
    ) -> "StoredRecord":
        return cls(
            first_name=submission.first_name,
            last_name=submission.last_name,
            email=submission.email,
            phone=submission.phone,
            property_address=submission.property_address,
            payment_id=submission.payment_reference,
            payment_amount=payment_amount,
            report_data=estimate.model_dump_json(),
            termites_mentioned=estimate.termites_mentioned,
            pests_mentioned=estimate.pests_mentioned,
            rot_mentioned=estimate.rot_mentioned,
        )

    def identity(self) -> CustomerIdentity:
        return CustomerIdentity(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            property_address=self.property_address,
        )

    def estimate(self) -> CostEstimate:
        return CostEstimate.model_validate_json(self.report_data)


# ---------------- Payments ----------------
class CheckoutSession(BaseModel):
    session_id: str
    url: Optional[str] = None


class PaymentInfo(BaseModel):
    session_id: str
    paid: bool
    amount: Optional[float] = None


# ---------------- Pipeline results ----------------
class StepFailure(BaseModel):
    step: str
    error: str


class ProcessResult(BaseModel):
    status: str = "complete"
    report: str
    record_id: Optional[int] = None
    notifications_sent: List[str] = Field(default_factory=list)
    failures: List[StepFailure] = Field(default_factory=list)
    timings: Dict[str, float] = Field(default_factory=dict)


# ---------------- HTTP responses ----------------
class CheckoutResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None


class ProcessReportResponse(BaseModel):
    success: bool = True
    report: str
    status: str
    recordId: Optional[int] = None
    notificationsSent: List[str] = Field(default_factory=list)
    failures: List[StepFailure] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ProcessResult) -> "ProcessReportResponse":
        return cls(
            report=result.report,
            status=result.status,
            recordId=result.record_id,
            notificationsSent=result.notifications_sent,
            failures=result.failures,
        )
