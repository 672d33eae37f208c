"""regdesk — order fulfillment and waitlist engine for course and event registrations.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
