"""AuditGuard API package."""
