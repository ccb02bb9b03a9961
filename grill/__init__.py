"""grill - task-scoped terminal proxy for interactive CLI agents."""

__version__ = "0.2.0"
