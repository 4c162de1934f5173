"""
Request actions for the shop dashboard.

Each action receives an explicit `RequestContext` and returns an
`ActionResult`. Store and identity failures are logged and reported in the
result; nothing is raised to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from .auth import IdentityProvider
from .cache import DASHBOARD_PATH, LOGIN_PATH, ViewCache, customer_path
from .exceptions import AuthenticationError, RecordNotFoundError, StoreError
from .lifecycle import OrderLifecycleManager
from .models import (
    ActionResult,
    Customer,
    CustomerForm,
    CustomerListItem,
    ErrorKind,
    LoginForm,
    MeasurementSetIn,
    OrderStatus,
    PaymentStatus,
    ShopUser,
    SignupForm,
    flatten_errors,
)
from .store import RecordStore

logger = logging.getLogger(__name__)

AUTH_FAILED = "Could not authenticate user"
INVALID_FIELDS = "Invalid fields"


@dataclass
class RequestContext:
    """Everything an action may touch for one request"""
    store: RecordStore
    identity: IdentityProvider
    cache: ViewCache
    user: Optional[ShopUser] = None
    origin: str = ""
    access_token: Optional[str] = None

    @property
    def lifecycle(self) -> OrderLifecycleManager:
        return OrderLifecycleManager(self.store, self.cache)


# ===== AUTH =====

def login(ctx: RequestContext, form: Mapping[str, Any]) -> ActionResult:
    try:
        fields = LoginForm.model_validate(dict(form))
    except ValidationError as e:
        return ActionResult.fail(INVALID_FIELDS, ErrorKind.VALIDATION, fields=flatten_errors(e))

    try:
        session = ctx.identity.sign_in_with_password(fields.email, fields.password)
    except AuthenticationError as e:
        logger.info("login_failed", extra={"evt": "login", "decision": "reject", "reason": e.message})
        return ActionResult.fail(AUTH_FAILED, ErrorKind.AUTHENTICATION)

    logger.info("login_ok", extra={"evt": "login", "decision": "ok", "user_id": session.user.id})
    return ActionResult.redirect(DASHBOARD_PATH, session=session)


def signup(ctx: RequestContext, form: Mapping[str, Any]) -> ActionResult:
    try:
        fields = SignupForm.model_validate(dict(form))
    except ValidationError as e:
        return ActionResult.fail(INVALID_FIELDS, ErrorKind.VALIDATION, fields=flatten_errors(e))

    try:
        ctx.identity.sign_up(fields.email, fields.password, redirect_to=f"{ctx.origin}/auth/callback")
        # Accounts are usable straight away; no email confirmation step
        session = ctx.identity.sign_in_with_password(fields.email, fields.password)
    except AuthenticationError as e:
        logger.info("signup_failed", extra={"evt": "signup", "decision": "reject", "reason": e.message})
        return ActionResult.fail(AUTH_FAILED, ErrorKind.AUTHENTICATION)

    logger.info("signup_ok", extra={"evt": "signup", "decision": "ok", "user_id": session.user.id})
    return ActionResult.redirect(DASHBOARD_PATH, session=session)


def logout(ctx: RequestContext) -> ActionResult:
    ctx.identity.sign_out(ctx.access_token)
    return ActionResult.redirect(LOGIN_PATH)


# ===== CUSTOMERS =====

def create_customer(ctx: RequestContext, form: Mapping[str, Any]) -> ActionResult:
    try:
        fields = CustomerForm.model_validate(dict(form))
    except ValidationError as e:
        return ActionResult.fail(INVALID_FIELDS, ErrorKind.VALIDATION, fields=flatten_errors(e))

    if ctx.user is None:
        return ActionResult.fail("You must be logged in to create a customer.", ErrorKind.UNAUTHENTICATED)

    row = fields.to_row()
    row["user_id"] = ctx.user.id
    try:
        created = ctx.store.insert_customer(row)
    except StoreError as e:
        logger.error(f"❌ Failed to create customer: {e.message}")
        return ActionResult.fail("Failed to create customer.", ErrorKind.STORE)

    customer_id = str(created["id"])
    ctx.cache.invalidate(DASHBOARD_PATH)
    return ActionResult.redirect(customer_path(customer_id), record_id=customer_id)


def update_customer(ctx: RequestContext, customer_id: str, form: Mapping[str, Any]) -> ActionResult:
    try:
        fields = CustomerForm.model_validate(dict(form))
    except ValidationError as e:
        return ActionResult.fail(INVALID_FIELDS, ErrorKind.VALIDATION, fields=flatten_errors(e))

    try:
        ctx.store.update_customer(customer_id, fields.to_row())
    except StoreError as e:
        logger.error(f"❌ Failed to update customer {customer_id}: {e.message}")
        return ActionResult.fail("Failed to update customer.", ErrorKind.STORE)

    ctx.cache.invalidate(DASHBOARD_PATH)
    ctx.cache.invalidate(customer_path(customer_id))
    return ActionResult.ok(record_id=customer_id)


def delete_customer(ctx: RequestContext, customer_id: str) -> ActionResult:
    try:
        ctx.store.delete_customer(customer_id)
    except StoreError as e:
        logger.error(f"❌ Failed to delete customer {customer_id}: {e.message}")
        return ActionResult.fail("Failed to delete customer.", ErrorKind.STORE)

    ctx.cache.invalidate(DASHBOARD_PATH)
    ctx.cache.invalidate(customer_path(customer_id))
    return ActionResult.redirect(DASHBOARD_PATH, record_id=customer_id)


# ===== MEASUREMENT SETS =====

def add_measurement_set(ctx: RequestContext, customer_id: str,
                        measurement_set: Union[MeasurementSetIn, Mapping[str, Any]]) -> ActionResult:
    if not isinstance(measurement_set, MeasurementSetIn):
        try:
            measurement_set = MeasurementSetIn.model_validate(dict(measurement_set))
        except ValidationError as e:
            return ActionResult.fail(INVALID_FIELDS, ErrorKind.VALIDATION, fields=flatten_errors(e))
    return ctx.lifecycle.add_measurement_set(customer_id, measurement_set)


def update_order_status(ctx: RequestContext, set_id: str, customer_id: str,
                        new_status: Union[OrderStatus, str]) -> ActionResult:
    return ctx.lifecycle.update_order_status(set_id, customer_id, new_status)


def update_payment_status(ctx: RequestContext, set_id: str, customer_id: str,
                          new_status: Union[PaymentStatus, str]) -> ActionResult:
    return ctx.lifecycle.update_payment_status(set_id, customer_id, new_status)


# ===== DATA FETCHING =====

def _matches(customer: CustomerListItem, needle: str) -> bool:
    haystack = [customer.name, customer.nic, customer.contact]
    haystack.extend(s.job_number for s in customer.measurement_sets if s.job_number)
    return any(needle in value.lower() for value in haystack)


def get_customers(ctx: RequestContext, query: Optional[str] = None) -> List[CustomerListItem]:
    """Customers newest first; an optional query filters on name, NIC, contact or job number"""
    try:
        rows = ctx.store.list_customers()
    except StoreError as e:
        logger.error(f"❌ Failed to list customers: {e.message}")
        return []

    customers = [CustomerListItem.from_row(row) for row in rows]
    needle = (query or "").strip().lower()
    if needle:
        customers = [c for c in customers if _matches(c, needle)]
    return customers


def get_customer_by_id(ctx: RequestContext, customer_id: str) -> Optional[Customer]:
    try:
        row = ctx.store.get_customer(customer_id)
    except RecordNotFoundError:
        return None
    except StoreError as e:
        logger.error(f"❌ Failed to load customer {customer_id}: {e.message}")
        return None
    return Customer.from_row(row)

