"""
                        Services Module

External collaborators behind the hybrid architecture pattern.
Each service has a Mock (development) and a Real (production) implementation.

Services:
    - orders: Order Service (create, track, list, status update, delete)
"""

from tableside.services.orders import get_order_service, reset_order_service

__all__ = ["get_order_service", "reset_order_service"]
