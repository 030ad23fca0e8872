"""API Layer — FastAPI routes, gatekeeping dependency, middleware and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - All failures return the structured ErrorRecord body

Design Decisions:
    - Thin routes delegate to the gatekeeper and collaborators
"""
