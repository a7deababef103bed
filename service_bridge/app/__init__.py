"""
AI bridge service package for the Exile AI Bridge.

The bridge sits between the item-checking client, the official trade API and
a LibreChat-style chat backend, enforcing:
- Admission control: per-client fixed-window rate limiting
- Degradation: each upstream failure is absorbed into its own result
- Circuit-breaking for resilient upstream calls

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.ratelimit: Fixed-window admission control.
- app.parsing: Heuristic item text parser.
- app.adapters: HTTP clients for the trade API and chat backend.
- app.pipeline: Result variants, fetchers, composer and orchestrator.
"""
