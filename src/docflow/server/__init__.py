"""HTTP adapter over the orchestrator and validation engine."""
