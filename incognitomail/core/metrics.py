"""
Prometheus Metrics

Defines application metrics for monitoring:
- Command counters and durations
- Queue depth gauge
- Account and handle counters
- Mail system rebuild counters
"""

from prometheus_client import Counter, Histogram, Gauge, Info

from incognitomail import __version__


# ===================================
# Command Metrics
# ===================================

commands_total = Counter(
    "incognitomail_commands_total",
    "Total number of commands executed by the actor",
    ["kind", "status"],  # status: success, error, denied
)

command_duration = Histogram(
    "incognitomail_command_duration_seconds",
    "Command execution duration in seconds",
    ["kind"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

commands_queued = Gauge(
    "incognitomail_commands_queued",
    "Number of commands waiting in the actor queue",
)


# ===================================
# Business Metrics
# ===================================

accounts_created = Counter(
    "incognitomail_accounts_created_total",
    "Total number of accounts created",
)

accounts_deleted = Counter(
    "incognitomail_accounts_deleted_total",
    "Total number of accounts deleted",
)

handles_created = Counter(
    "incognitomail_handles_created_total",
    "Total number of handles created",
)

handles_deleted = Counter(
    "incognitomail_handles_deleted_total",
    "Total number of handles deleted",
)


# ===================================
# Mail System Metrics
# ===================================

postmap_runs_total = Counter(
    "incognitomail_postmap_runs_total",
    "Total number of map index rebuilds",
    ["status"],  # success, error
)


# ===================================
# Application Info
# ===================================

app_info = Info(
    "incognitomail_app",
    "Application information",
)

app_info.info({
    "version": __version__,
    "name": "IncognitoMail",
})


# ===================================
# Helper Functions
# ===================================

def record_command(kind: str, status: str, duration: float):
    """
    Record a finished command.

    Args:
        kind: Command kind (new_handle, new_account, ...)
        status: success, error or denied
        duration: Execution duration in seconds
    """
    commands_total.labels(kind=kind, status=status).inc()
    command_duration.labels(kind=kind).observe(duration)


def record_postmap(success: bool):
    """Record a map index rebuild."""
    postmap_runs_total.labels(status="success" if success else "error").inc()
