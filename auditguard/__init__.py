"""AuditGuard - compliance audit admission and orchestration pipeline."""

__version__ = "0.1.0"
__author__ = "AuditGuard Team"

__all__ = ["__version__"]
