"""
Record store for customers and measurement sets.

`SupabaseRecordStore` talks to the Supabase PostgREST API. Every method either
returns the affected row(s) or raises `StoreError`; callers decide how to
report the failure.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client, create_client

from .config import Settings
from .exceptions import RecordNotFoundError, StoreError

logger = logging.getLogger(__name__)

CUSTOMERS_TABLE = "customers"
MEASUREMENT_SETS_TABLE = "measurement_sets"

CUSTOMER_LIST_COLUMNS = "*, measurement_sets(job_number, order_status)"
CUSTOMER_DETAIL_COLUMNS = (
    "*, measurement_sets(id, date, measurements, job_number, request_date, "
    "payment_status, order_status, completion_date, handover_date)"
)


def create_backend_client(settings: Settings, access_token: Optional[str] = None) -> Client:
    """Create a Supabase client, scoped to the caller's session when a token is given"""
    settings.require_supabase()
    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
    if access_token:
        # Row level security policies see the signed-in user
        client.postgrest.auth(access_token)
    return client


class RecordStore(ABC):
    """Abstract base class for customer / measurement set storage"""

    @abstractmethod
    def insert_customer(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a customer row and return it with its generated id"""
        pass

    @abstractmethod
    def update_customer(self, customer_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply changes to a customer row"""
        pass

    @abstractmethod
    def delete_customer(self, customer_id: str) -> None:
        """Delete a customer; the store cascades to its measurement sets"""
        pass

    @abstractmethod
    def list_customers(self) -> List[Dict[str, Any]]:
        """All customers, newest first, with measurement set summaries"""
        pass

    @abstractmethod
    def get_customer(self, customer_id: str) -> Dict[str, Any]:
        """One customer with its full measurement sets"""
        pass

    @abstractmethod
    def insert_measurement_set(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a measurement set row"""
        pass

    @abstractmethod
    def update_measurement_set(self, set_id: str, customer_id: str,
                               changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply changes to a measurement set owned by customer_id"""
        pass


class SupabaseRecordStore(RecordStore):
    """Supabase (PostgREST) backed record store"""

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, operation: str, query) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except PostgrestAPIError as e:
            logger.error(f"❌ Supabase error during {operation}: {e.message}",
                         extra={"evt": "store_error", "operation": operation, "code": e.code})
            raise StoreError(e.message or "Supabase request failed", operation=operation,
                             details=e.details) from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Supabase unreachable during {operation}: {e}",
                         extra={"evt": "store_error", "operation": operation})
            raise StoreError(f"Supabase request failed: {e}", operation=operation) from e
        return response.data or []

    def _single(self, operation: str, rows: List[Dict[str, Any]], what: str) -> Dict[str, Any]:
        if not rows:
            raise RecordNotFoundError(f"{what} not found", operation=operation)
        return rows[0]

    # ===== CUSTOMERS =====

    def insert_customer(self, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._execute("insert_customer", self.client.table(CUSTOMERS_TABLE).insert(row))
        customer = self._single("insert_customer", rows, "Inserted customer")
        logger.info(f"✅ Created customer {customer.get('id')}")
        return customer

    def update_customer(self, customer_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        query = self.client.table(CUSTOMERS_TABLE).update(changes).eq("id", customer_id)
        rows = self._execute("update_customer", query)
        return self._single("update_customer", rows, f"Customer {customer_id}")

    def delete_customer(self, customer_id: str) -> None:
        query = self.client.table(CUSTOMERS_TABLE).delete().eq("id", customer_id)
        rows = self._execute("delete_customer", query)
        self._single("delete_customer", rows, f"Customer {customer_id}")
        logger.info(f"✅ Deleted customer {customer_id}")

    def list_customers(self) -> List[Dict[str, Any]]:
        query = (
            self.client.table(CUSTOMERS_TABLE)
            .select(CUSTOMER_LIST_COLUMNS)
            .order("created_at", desc=True)
        )
        return self._execute("list_customers", query)

    def get_customer(self, customer_id: str) -> Dict[str, Any]:
        query = (
            self.client.table(CUSTOMERS_TABLE)
            .select(CUSTOMER_DETAIL_COLUMNS)
            .eq("id", customer_id)
            .limit(1)
        )
        rows = self._execute("get_customer", query)
        return self._single("get_customer", rows, f"Customer {customer_id}")

    # ===== MEASUREMENT SETS =====

    def insert_measurement_set(self, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._execute("insert_measurement_set",
                             self.client.table(MEASUREMENT_SETS_TABLE).insert(row))
        return self._single("insert_measurement_set", rows, "Inserted measurement set")

    def update_measurement_set(self, set_id: str, customer_id: str,
                               changes: Dict[str, Any]) -> Dict[str, Any]:
        query = (
            self.client.table(MEASUREMENT_SETS_TABLE)
            .update(changes)
            .eq("id", set_id)
            .eq("customer_id", customer_id)
        )
        rows = self._execute("update_measurement_set", query)
        return self._single("update_measurement_set", rows,
                            f"Measurement set {set_id} for customer {customer_id}")
