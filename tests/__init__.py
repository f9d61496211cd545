"""Tests for task-orchestrator."""
