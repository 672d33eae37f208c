"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - All functions are pure and deterministic (clocks and tokens are passed in or isolated)

Design Decisions:
    - Functional core separated from imperative shell: state machines and money math
      are testable without a database
"""
