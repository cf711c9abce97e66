"""ParentPilot multi-agent task processing core."""

__version__ = "0.1.0"
