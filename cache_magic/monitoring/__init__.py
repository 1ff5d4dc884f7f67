from .health import CheckResult, HealthMonitor, HealthReport, Recommendation

__all__ = ["CheckResult", "HealthMonitor", "HealthReport", "Recommendation"]
