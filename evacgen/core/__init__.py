"""Core orchestration package.

Composition:
    - `orchestrator`: Dual and single scenario control flow.
    - `types`: Call-scoped data contracts.
    - `errors`: Failure taxonomy surfaced to callers.
"""
