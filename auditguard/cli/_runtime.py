"""Helpers shared by the CLI commands."""

import asyncio
from typing import Any, Awaitable, Callable

import click

from auditguard.api.container import Container, get_container
from auditguard.api.domain.exceptions import DomainError
from auditguard.utils.logger import configure_logging


def run_with_container(action: Callable[[Container], Awaitable[Any]]) -> Any:
    """Build the container from the environment and run one async action with it."""
    try:
        container = get_container()
    except DomainError as e:
        raise click.ClickException(e.message)

    configure_logging(container.config.log_level)

    async def runner():
        try:
            return await action(container)
        finally:
            await container.aclose()

    try:
        return asyncio.run(runner())
    except DomainError as e:
        raise click.ClickException(e.message)
