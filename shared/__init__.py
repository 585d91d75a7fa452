"""
Shared Kernel

Domain errors, value objects, the unit of work, the message bus and the
tenant isolation layer used by every booking core app.
"""
