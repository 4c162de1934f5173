import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import fakeredis
import pytest

from tailor_crm.actions import RequestContext
from tailor_crm.auth import IdentityProvider
from tailor_crm.cache import ViewCache
from tailor_crm.exceptions import AuthenticationError, RecordNotFoundError, StoreError
from tailor_crm.models import AuthSession, ShopUser
from tailor_crm.store import RecordStore

SUMMARY_COLUMNS = ("job_number", "order_status")


class InMemoryRecordStore(RecordStore):
    """RecordStore double with the same foreign key and cascade rules as the SQL schema"""

    def __init__(self):
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.measurement_sets: Dict[str, Dict[str, Any]] = {}
        self.unavailable = False
        self._ids = itertools.count(1)
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self, operation: str):
        if self.unavailable:
            raise StoreError("connection refused", operation=operation)

    def _sets_for(self, customer_id: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(s) for s in self.measurement_sets.values() if s["customer_id"] == customer_id]

    def insert_customer(self, row):
        self._check("insert_customer")
        n = next(self._ids)
        customer = dict(row, id=f"cust-{n}", created_at=(self._epoch + timedelta(minutes=n)).isoformat())
        customer.setdefault("order_history", None)
        customer.setdefault("preferences", None)
        self.customers[customer["id"]] = customer
        return copy.deepcopy(customer)

    def update_customer(self, customer_id, changes):
        self._check("update_customer")
        if customer_id not in self.customers:
            raise RecordNotFoundError(f"Customer {customer_id} not found", operation="update_customer")
        self.customers[customer_id].update(changes)
        return copy.deepcopy(self.customers[customer_id])

    def delete_customer(self, customer_id):
        self._check("delete_customer")
        if self.customers.pop(customer_id, None) is None:
            raise RecordNotFoundError(f"Customer {customer_id} not found", operation="delete_customer")
        for set_id in [k for k, s in self.measurement_sets.items() if s["customer_id"] == customer_id]:
            del self.measurement_sets[set_id]

    def list_customers(self):
        self._check("list_customers")
        rows = []
        for customer in sorted(self.customers.values(), key=lambda c: c["created_at"], reverse=True):
            summaries = [{k: s[k] for k in SUMMARY_COLUMNS} for s in self._sets_for(customer["id"])]
            rows.append(dict(copy.deepcopy(customer), measurement_sets=summaries))
        return rows

    def get_customer(self, customer_id):
        self._check("get_customer")
        if customer_id not in self.customers:
            raise RecordNotFoundError(f"Customer {customer_id} not found", operation="get_customer")
        sets = [{k: v for k, v in s.items() if k != "customer_id"} for s in self._sets_for(customer_id)]
        return dict(copy.deepcopy(self.customers[customer_id]), measurement_sets=sets)

    def insert_measurement_set(self, row):
        self._check("insert_measurement_set")
        if row["customer_id"] not in self.customers:
            raise StoreError("insert or update on table \"measurement_sets\" violates foreign key constraint",
                             operation="insert_measurement_set")
        measurement_set = dict(row, id=f"set-{next(self._ids)}")
        measurement_set.setdefault("completion_date", None)
        measurement_set.setdefault("handover_date", None)
        self.measurement_sets[measurement_set["id"]] = measurement_set
        return copy.deepcopy(measurement_set)

    def update_measurement_set(self, set_id, customer_id, changes):
        self._check("update_measurement_set")
        measurement_set = self.measurement_sets.get(set_id)
        if measurement_set is None or measurement_set["customer_id"] != customer_id:
            raise RecordNotFoundError(f"Measurement set {set_id} not found", operation="update_measurement_set")
        measurement_set.update(changes)
        return copy.deepcopy(measurement_set)


class FakeIdentityProvider(IdentityProvider):
    """Password accounts kept in memory; tokens are 'token-<user id>'"""

    def __init__(self):
        self.accounts: Dict[str, Dict[str, str]] = {}
        self.revoked_tokens: List[str] = []
        self.sign_up_redirects: List[str] = []
        self.reject_sign_up = False

    def add_account(self, email: str, password: str) -> ShopUser:
        user_id = f"user-{len(self.accounts) + 1}"
        self.accounts[email] = {"id": user_id, "password": password}
        return ShopUser(id=user_id, email=email)

    def token_for(self, user: ShopUser) -> str:
        return f"token-{user.id}"

    def get_user(self, access_token: Optional[str]) -> Optional[ShopUser]:
        for email, account in self.accounts.items():
            if access_token == f"token-{account['id']}" and access_token not in self.revoked_tokens:
                return ShopUser(id=account["id"], email=email)
        return None

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthenticationError("Invalid login credentials", operation="sign_in")
        user = ShopUser(id=account["id"], email=email)
        return AuthSession(user=user, access_token=self.token_for(user), refresh_token="refresh")

    def sign_up(self, email: str, password: str, redirect_to: str) -> None:
        if self.reject_sign_up or email in self.accounts:
            raise AuthenticationError("User already registered", operation="sign_up")
        self.sign_up_redirects.append(redirect_to)
        self.add_account(email, password)

    def sign_out(self, access_token: Optional[str]) -> None:
        if access_token:
            self.revoked_tokens.append(access_token)


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def redis_server():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def view_cache(redis_server):
    return ViewCache(redis_server, ttl_seconds=60)


@pytest.fixture
def shop_user(identity):
    return identity.add_account("owner@example.com", "secret1")


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def ctx(store, identity, view_cache, shop_user):
    return RequestContext(store=store, identity=identity, cache=view_cache, user=shop_user,
                          origin="http://localhost:8000", access_token=identity.token_for(shop_user))


@pytest.fixture
def customer(store, shop_user):
    return store.insert_customer({
        "name": "A B", "nic": "12345", "contact": "0771234567", "user_id": shop_user.id,
    })
