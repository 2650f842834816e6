"""Employee records service with database auditing and runtime monitoring."""

__version__ = "0.1.0"
