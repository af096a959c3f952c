"""AuditGuard command line interface."""
