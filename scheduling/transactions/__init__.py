"""
Atomic transaction handlers.

Transaction handlers encapsulate multi-step operations that must execute
atomically (all succeed or all rollback), with side effects such as
notifications running only after the database commit.

Transaction handlers:
- BookingTransaction: Create PENDING appointments with a per-business booking lock
"""

from scheduling.transactions.booking_transaction import BookingTransaction

__all__ = ["BookingTransaction"]
