"""
                Tableside Ordering

Core of a dine-in restaurant ordering system: the diner's cart, order
submission and tracking, and the staff order console, talking to an
Order Service through a hybrid Mock/HTTP architecture.

Version: 1.0.0
"""

__version__ = "1.0.0"
