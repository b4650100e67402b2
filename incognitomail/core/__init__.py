"""
Core Module

Core functionality including:
- Security (random secrets and handles)
- Logging (structured logging)
- Metrics (Prometheus)
- Exceptions (custom exceptions)
"""

__all__ = [
    "security",
    "logging",
    "metrics",
    "exceptions",
]
