"""Pipeline data model, safety governor and orchestrator."""
