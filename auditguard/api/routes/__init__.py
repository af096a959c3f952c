"""API routes package."""

from fastapi import APIRouter

from auditguard.api.routes import audits, compliance, health, workflows

router = APIRouter(prefix="/api/v1")
router.include_router(health.router)
router.include_router(audits.router)
router.include_router(compliance.router)
router.include_router(workflows.router)

__all__ = ["router", "audits", "compliance", "health", "workflows"]
