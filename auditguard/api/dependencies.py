"""FastAPI dependencies shared by the routers."""

from typing import Optional
import logging

from fastapi import Request

from .container import Container, get_container


logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> Optional[str]:
    """
    Caller identity as set by the auth gateway.

    Session verification happens upstream; a missing header means the
    request is unauthenticated.
    """
    user_id = request.headers.get("X-User-ID")
    return user_id.strip() if user_id and user_id.strip() else None


def get_container_dep() -> Container:
    """FastAPI dependency for container."""
    return get_container()


async def deliver_signal(container: Container, message_id: Optional[str]) -> None:
    """Background task: push one outbox message to the workflow engine right away."""
    if not message_id:
        return
    try:
        await container.outbox_processor().deliver([message_id])
    except Exception as e:
        logger.error(f"Background delivery of outbox message {message_id} failed: {e}")
