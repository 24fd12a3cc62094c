"""Agent Supervisor: validates containerized tournament agents."""

__version__ = "1.0.0"
