"""agent-delegator - Role-based task delegation for coding agents."""

__version__ = "0.1.0"
