"""
Domain records, form schemas and action results.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, BeforeValidator, EmailStr, Field, ValidationError
from pydantic_core import PydanticCustomError


class OrderStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    HANDED_OVER = "Handed Over"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    UNAUTHENTICATED = "unauthenticated"
    STORE = "store"


# ---------------------------------------------------------------------------
# Form schemas
# ---------------------------------------------------------------------------

def _min_length(minimum: int, message: str) -> AfterValidator:
    def check(value: str) -> str:
        if len(value) < minimum:
            raise PydanticCustomError("string_too_short", message)
        return value
    return AfterValidator(check)


class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class SignupForm(LoginForm):
    pass


class CustomerForm(BaseModel):
    """Customer create/update form. Accepts both snake_case and camelCase field names."""

    name: Annotated[str, _min_length(2, "Name must be at least 2 characters.")]
    nic: Annotated[str, _min_length(5, "NIC must be at least 5 characters.")]
    contact: Annotated[str, _min_length(5, "Contact information is required.")]
    order_history: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("order_history", "orderHistory")
    )
    preferences: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class MeasurementSetIn(BaseModel):
    measurements: Dict[str, Any] = Field(default_factory=dict)
    job_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("job_number", "jobNumber"))
    request_date: Optional[date] = Field(default=None, validation_alias=AliasChoices("request_date", "requestDate"))
    payment_status: PaymentStatus = Field(validation_alias=AliasChoices("payment_status", "paymentStatus"))
    order_status: OrderStatus = Field(validation_alias=AliasChoices("order_status", "orderStatus"))


class StatusUpdateIn(BaseModel):
    status: str


def flatten_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """Group validation messages by top-level field name"""
    fields: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("__root__",)
        fields.setdefault(str(loc[0]), []).append(error["msg"])
    return fields


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

# Supabase tables may use uuid or bigint keys
RecordId = Annotated[str, BeforeValidator(str)]


class ShopUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthSession(BaseModel):
    user: ShopUser
    access_token: str
    refresh_token: Optional[str] = None


class MeasurementSetSummary(BaseModel):
    job_number: Optional[str] = None
    order_status: OrderStatus


class MeasurementSet(BaseModel):
    id: RecordId
    date: datetime
    measurements: Dict[str, Any] = Field(default_factory=dict)
    job_number: Optional[str] = None
    request_date: Optional[date] = None
    payment_status: PaymentStatus
    order_status: OrderStatus
    completion_date: Optional[datetime] = None
    handover_date: Optional[datetime] = None


class CustomerListItem(BaseModel):
    id: RecordId
    created_at: datetime
    name: str
    nic: str
    contact: str
    order_history: str = ""
    preferences: str = ""
    measurement_sets: List[MeasurementSetSummary] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        data = dict(row)
        data["order_history"] = data.get("order_history") or ""
        data["preferences"] = data.get("preferences") or ""
        data["measurement_sets"] = data.get("measurement_sets") or []
        return cls.model_validate(data)


class Customer(CustomerListItem):
    measurement_sets: List[MeasurementSet] = Field(default_factory=list)  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Action results
# ---------------------------------------------------------------------------

class ActionResult(BaseModel):
    success: bool = False
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    fields: Optional[Dict[str, List[str]]] = None
    redirect_to: Optional[str] = None
    record_id: Optional[str] = None
    session: Optional[AuthSession] = Field(default=None, exclude=True)

    @classmethod
    def ok(cls, record_id: Optional[str] = None) -> "ActionResult":
        return cls(success=True, record_id=record_id)

    @classmethod
    def redirect(cls, path: str, **kwargs: Any) -> "ActionResult":
        return cls(success=True, redirect_to=path, **kwargs)

    @classmethod
    def fail(cls, message: str, kind: ErrorKind,
             fields: Optional[Dict[str, List[str]]] = None) -> "ActionResult":
        return cls(success=False, error=message, error_kind=kind, fields=fields)

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        return {
            ErrorKind.VALIDATION: 400,
            ErrorKind.AUTHENTICATION: 401,
            ErrorKind.UNAUTHENTICATED: 401,
            ErrorKind.STORE: 502,
        }.get(self.error_kind, 400)
