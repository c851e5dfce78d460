"""Shared CLI helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console

from procflow.settings import Settings, get_settings

console = Console()

T = TypeVar("T")


def parse_params(values: list[str] | None) -> dict[str, str]:
    """Turn repeated ``--param key=value`` options into a mapping.

    Values stay strings; numeric flow conditions parse them themselves.
    """
    params: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint="--param")
        params[key.strip()] = value
    return params


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion, then dispose the database engine."""
    from procflow.storage import close_db

    async def _runner() -> T:
        try:
            return await coro
        finally:
            await close_db()

    return asyncio.run(_runner())


async def build_engine(settings: Settings | None = None):
    """Wire a ``WorkflowEngine`` against the configured database.

    Definitions come from ``settings.definitions_path`` when set, otherwise
    from the definitions published to the database.
    """
    from procflow.dal import DatabaseDefinitionLoader, SqlWorkflowStore, TableIdGenerator
    from procflow.definition import DefinitionRegistry, YamlDefinitionLoader
    from procflow.engine import WorkflowEngine

    settings = settings or get_settings()
    if settings.definitions_path is not None:
        loader = YamlDefinitionLoader(settings.definitions_path)
    else:
        loader = DatabaseDefinitionLoader()

    registry = DefinitionRegistry(loader)
    await registry.reload()
    return WorkflowEngine.from_settings(
        settings, registry, SqlWorkflowStore(), TableIdGenerator()
    )
