"""Core (UI-agnostic) learner profile logic.

This package contains:
- token inspection and the GraphQL record fetcher (httpx, asyncio)
- record normalization (raw GraphQL rows -> pandas)
- derivation functions (points, level, audits, pass rate, skills)
- chart renderers (geometry + Altair -> Vega-Lite spec dict)
- the session context that holds the token and the last derived dataset
"""
