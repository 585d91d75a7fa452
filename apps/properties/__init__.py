"""Properties app package.

Holds the tenant root (``Property``) and the inventory every booking
depends on: rooms, room blocks and pricing rates.
"""
