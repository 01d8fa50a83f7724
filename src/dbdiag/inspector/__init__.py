from .checker import ConnectionChecker
from .orchestrator import HealthCheckOrchestrator

__all__ = ["ConnectionChecker", "HealthCheckOrchestrator"]
