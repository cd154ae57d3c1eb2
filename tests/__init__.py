"""Tests for agent-delegator."""
