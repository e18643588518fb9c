"""Workflow: fixed phase lifecycle, agent contract, and the orchestrator."""
