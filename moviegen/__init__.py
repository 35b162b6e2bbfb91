"""Multi-scene AI movie generation: orchestrator, ledger and admin API."""
