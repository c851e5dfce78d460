"""Workflow definition loaders.

A loader materializes every known ``WorkflowDefinition`` snapshot. The
registry calls ``load()`` on start-up and on ``reload()``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

import yaml

from procflow.conditions.registry import ConditionRegistry
from procflow.definition.builder import build_definition
from procflow.definition.model import WorkflowDefinition
from procflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class DefinitionLoader(ABC):
    """Source of workflow definition snapshots."""

    @abstractmethod
    async def load(self) -> list[WorkflowDefinition]:
        """Load all definitions (every workflow id, every version)."""


class StaticDefinitionLoader(DefinitionLoader):
    """Serves a fixed list of already-built definitions."""

    def __init__(self, definitions: Iterable[WorkflowDefinition]):
        self._definitions = list(definitions)

    async def load(self) -> list[WorkflowDefinition]:
        return list(self._definitions)


class YamlDefinitionLoader(DefinitionLoader):
    """Loads one definition per YAML file.

    ``paths`` may mix files and directories; directories are scanned
    (non-recursively) for ``*.yaml`` / ``*.yml`` in name order.
    """

    def __init__(
        self,
        paths: Path | str | Iterable[Path | str],
        conditions: ConditionRegistry | None = None,
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._conditions = conditions or ConditionRegistry.with_defaults()

    def files(self) -> list[Path]:
        """Resolve the configured paths to the YAML files to read."""
        files: list[Path] = []
        for path in self._paths:
            if path.is_dir():
                files.extend(
                    sorted(p for p in path.iterdir() if p.suffix.lower() in YAML_SUFFIXES)
                )
            elif path.is_file():
                files.append(path)
            else:
                raise ConfigurationError(f"Definition path does not exist. path = [{path}]")
        return files

    async def load(self) -> list[WorkflowDefinition]:
        definitions = [self.load_file(path) for path in self.files()]
        definitions.sort(key=lambda d: (d.workflow_id, d.version))
        return definitions

    def load_file(self, path: Path) -> WorkflowDefinition:
        """Parse and build the definition stored in ``path``."""
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in definition file. path = [{path}]: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Definition file must contain a mapping. path = [{path}]"
            )
        definition = build_definition(data, self._conditions)
        logger.info(
            "Loaded workflow definition %s version %d (%s), effective %s from %s",
            definition.workflow_id,
            definition.version,
            definition.name,
            definition.effective_date.isoformat(),
            path,
        )
        return definition
