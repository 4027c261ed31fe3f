"""
                        Services Module

Contains the coordination managers and their collaborators. Collaborators
(store, notifications) follow the hybrid pattern: an in-memory/recording
implementation for development and tests, a real one for deployed stations.

Services:
    - orders: Order and order-item lifecycle
    - tables: Table occupancy and derived transitions
    - reservations: Table bookings
    - billing: Bill generation and settlement
    - payment: Tender validation and change computation
    - cues: Floor-plan attention cues
    - store: Persistence (memory / SQL)
    - identity: Acting user and tenant
    - notifications: Success/failure messages for staff
"""

from tableflow.services.billing import BillAggregator
from tableflow.services.orders import OrderLifecycleManager
from tableflow.services.payment import PaymentProcessor
from tableflow.services.reservations import ReservationManager
from tableflow.services.tables import TableLifecycleManager, Trigger

__all__ = [
    "BillAggregator",
    "OrderLifecycleManager",
    "PaymentProcessor",
    "ReservationManager",
    "TableLifecycleManager",
    "Trigger",
]
