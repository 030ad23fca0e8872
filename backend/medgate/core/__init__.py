"""Core Layer — pipeline stages and domain rules, no IO, no async, no framework.

Invariants:
    - No module in core/ imports from services/, api/, or infrastructure/
    - Stage functions are pure; the rate limiter is the only stateful object here

Design Decisions:
    - Functional core separated from imperative shell (services/gatekeeper.py)
"""
