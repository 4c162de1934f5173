"""
Tailor CRM

Customer records, measurement sets and order/payment tracking for a
tailoring shop, backed by Supabase auth and storage.
"""

from .actions import RequestContext
from .cache import ViewCache
from .lifecycle import OrderLifecycleManager
from .models import ActionResult, OrderStatus, PaymentStatus
from .store import RecordStore, SupabaseRecordStore

__all__ = [
    'RequestContext',
    'ViewCache',
    'OrderLifecycleManager',
    'ActionResult',
    'OrderStatus',
    'PaymentStatus',
    'RecordStore',
    'SupabaseRecordStore',
]

__version__ = '1.0.0'
