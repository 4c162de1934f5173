"""
Order lifecycle for measurement sets.

Any order status may follow any other; the only coupling between a status
value and a side effect is the timestamp each terminal stage stamps.
Stamped dates are never cleared, so moving an order back to an earlier stage
keeps its history.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Union

from .cache import DASHBOARD_PATH, ViewCache, customer_path
from .exceptions import StoreError
from .models import ActionResult, ErrorKind, MeasurementSetIn, OrderStatus, PaymentStatus
from .store import RecordStore

logger = logging.getLogger(__name__)

# Date column stamped when an order enters the stage
STAGE_TIMESTAMPS: Dict[OrderStatus, str] = {
    OrderStatus.COMPLETED: "completion_date",
    OrderStatus.HANDED_OVER: "handover_date",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def order_status_changes(new_status: OrderStatus, now: datetime) -> Dict[str, Any]:
    """Column changes for moving a measurement set to new_status"""
    changes: Dict[str, Any] = {"order_status": new_status.value}
    column = STAGE_TIMESTAMPS.get(new_status)
    if column:
        changes[column] = now.isoformat()
    return changes


class OrderLifecycleManager:
    def __init__(self, store: RecordStore, cache: ViewCache,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.cache = cache
        self.clock = clock

    def update_order_status(self, set_id: str, customer_id: str,
                            new_status: Union[OrderStatus, str]) -> ActionResult:
        try:
            status = OrderStatus(new_status)
        except ValueError:
            return ActionResult.fail("Invalid order status.", ErrorKind.VALIDATION,
                                     fields={"status": [f"Unknown order status: {new_status}"]})

        changes = order_status_changes(status, self.clock())
        try:
            self.store.update_measurement_set(set_id, customer_id, changes)
        except StoreError as e:
            logger.error(f"❌ Failed to update order status of {set_id}: {e.message}")
            return ActionResult.fail("Failed to update order status.", ErrorKind.STORE)

        logger.info("order_status_updated", extra={
            "evt": "order_status", "set_id": set_id, "customer_id": customer_id, "status": status.value,
        })
        self.cache.invalidate(customer_path(customer_id))
        # Dashboard rows carry each set's order_status
        self.cache.invalidate(DASHBOARD_PATH)
        return ActionResult.ok(record_id=set_id)

    def update_payment_status(self, set_id: str, customer_id: str,
                              new_status: Union[PaymentStatus, str]) -> ActionResult:
        try:
            status = PaymentStatus(new_status)
        except ValueError:
            return ActionResult.fail("Invalid payment status.", ErrorKind.VALIDATION,
                                     fields={"status": [f"Unknown payment status: {new_status}"]})

        try:
            self.store.update_measurement_set(set_id, customer_id, {"payment_status": status.value})
        except StoreError as e:
            logger.error(f"❌ Failed to update payment status of {set_id}: {e.message}")
            return ActionResult.fail("Failed to update payment status.", ErrorKind.STORE)

        logger.info("payment_status_updated", extra={
            "evt": "payment_status", "set_id": set_id, "customer_id": customer_id, "status": status.value,
        })
        self.cache.invalidate(customer_path(customer_id))
        return ActionResult.ok(record_id=set_id)

    def add_measurement_set(self, customer_id: str, measurement_set: MeasurementSetIn) -> ActionResult:
        row = {
            "customer_id": customer_id,
            "date": self.clock().isoformat(),
            "measurements": measurement_set.measurements,
            "job_number": measurement_set.job_number,
            "request_date": measurement_set.request_date.isoformat() if measurement_set.request_date else None,
            "payment_status": measurement_set.payment_status.value,
            "order_status": measurement_set.order_status.value,
        }
        try:
            created = self.store.insert_measurement_set(row)
        except StoreError as e:
            logger.error(f"❌ Failed to add measurement set for {customer_id}: {e.message}")
            return ActionResult.fail("Failed to add measurement set.", ErrorKind.STORE)

        logger.info(f"✅ Added measurement set {created.get('id')} for customer {customer_id}")
        self.cache.invalidate(customer_path(customer_id))
        self.cache.invalidate(DASHBOARD_PATH)
        return ActionResult.ok(record_id=str(created["id"]))
