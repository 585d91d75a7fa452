"""Finances app package.

Append-only payment ledger and the aggregator that keeps
``Booking.paid_amount`` and the guest revenue counters in step with it.
"""
