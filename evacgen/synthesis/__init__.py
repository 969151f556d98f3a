"""Image synthesis adapter package.

Scope:
    Queue client, status notifications, and the scenario-level service used
    by the orchestrator.

Non-goals:
    - No retry or backoff for failed jobs.
    - No persistence of generated images.
"""
