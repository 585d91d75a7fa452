"""Guests app package.

Guest profiles scoped to a property. ``total_revenue`` and
``visit_count`` are derived from the guest's bookings and maintained by
the finances ledger aggregator.
"""
