"""Services Layer — composes pure core stages with shared state and logging.

Invariants:
    - Services own sequencing; decisions stay in core/

Design Decisions:
    - One service per request flow (gatekeeper) rather than a generic middleware chain
"""
