"""Bookings app package.

Owns the booking record, its lifecycle state machine, availability and
nightly pricing. Every mutation runs inside a ``TenantUnitOfWork`` and
goes through the command handlers in ``apps.bookings.application``.
Overlapping stays for one room are rejected under a room row lock and,
on PostgreSQL, by an exclusion constraint.
"""
