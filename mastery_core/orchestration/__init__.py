"""Orchestration: lesson state machine and the progression engine facade."""
