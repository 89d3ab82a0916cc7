"""A registry of versioned tools with dependency checks and invocation history."""

from __future__ import annotations

import asyncio
import copy
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from semver import Version

from .registry_types import (
    CircularDependencies,
    InternalRegistryError,
    InvalidToolName,
    InvalidToolVersion,
    ToolAlreadyExists,
    ToolDependency,
    ToolInvocation,
    ToolMetadata,
    ToolNotFound,
    ToolOperationFailed,
    UnresolvedDependencies,
    version_matches,
)
from .tool import Tool, ToolError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")

_Key = tuple[str, Version]


def _parse_version(text: str) -> Version:
    try:
        return Version.parse(text)
    except (ValueError, TypeError):
        raise InvalidToolVersion(str(text)) from None


def _check_requirement(requirement: str) -> None:
    """Raise InvalidToolVersion if ``requirement`` cannot be parsed."""
    try:
        version_matches(requirement, Version(0, 0, 0))
    except (ValueError, TypeError, AttributeError):
        raise InvalidToolVersion(str(requirement)) from None


class ToolRegistry:
    """Registers tools by name and version, resolves dependencies and tracks invocations."""

    def __init__(self, max_invocations: int = 100) -> None:
        self.max_invocations = max_invocations
        self._tools: dict[_Key, Tool] = {}
        self._metadata: dict[_Key, ToolMetadata] = {}
        self._invocations: list[ToolInvocation] = []
        self._lock = asyncio.Lock()

    async def register(
        self,
        name: str,
        version: str,
        tool: Tool,
        dependencies: Optional[Iterable[ToolDependency]] = None,
    ) -> None:
        """Initialise ``tool`` and register it under ``name`` and ``version``."""
        if not name or not _NAME_RE.fullmatch(name):
            raise InvalidToolName(name)
        parsed = _parse_version(version)
        deps = list(dependencies or [])
        async with self._lock:
            key = (name, parsed)
            if key in self._tools:
                raise ToolAlreadyExists(name, str(parsed))
            self._validate_dependencies(deps)
            try:
                await tool.initialize()
            except ToolError as err:
                raise ToolOperationFailed(err) from err
            spec = tool.spec()
            self._metadata[key] = ToolMetadata(
                name=name,
                version=parsed,
                description=spec.description,
                capabilities=list(tool.capabilities()),
                dependencies=deps,
                spec=spec,
            )
            self._tools[key] = tool
        logger.info("Tool registered: %s", name)

    def _latest_key(self, name: str, keys: Iterable[_Key]) -> Optional[_Key]:
        candidates = [key for key in keys if key[0] == name]
        if not candidates:
            return None
        return max(candidates, key=lambda key: key[1])

    def _resolve_key(self, name: str, version: Optional[str], keys: Iterable[_Key]) -> _Key:
        if version is not None:
            key = (name, _parse_version(version))
            if key not in set(keys):
                raise ToolNotFound(name, version)
            return key
        latest = self._latest_key(name, keys)
        if latest is None:
            raise ToolNotFound(name)
        return latest

    def get_tool(self, name: str, version: Optional[str] = None) -> Tool:
        """Return the tool with this name and version, or the latest version when none is given."""
        return self._tools[self._resolve_key(name, version, self._tools)]

    def get_metadata(self, name: str, version: Optional[str] = None) -> ToolMetadata:
        """Return a copy of the metadata for a tool, the latest version when none is given."""
        return copy.deepcopy(self._metadata[self._resolve_key(name, version, self._metadata)])

    def get_all_tools(self) -> list[tuple[str, str, ToolMetadata]]:
        """Return ``(name, version, metadata)`` for every registered tool."""
        return [
            (name, str(version), copy.deepcopy(metadata))
            for (name, version), metadata in self._metadata.items()
        ]

    async def invoke(self, name: str, version: Optional[str] = None, input: Any = None) -> Any:
        """Invoke a tool, record the invocation and return the tool's output."""
        tool = self.get_tool(name, version)
        version_str = version if version is not None else str(self.get_metadata(name).version)
        invocation = ToolInvocation(
            tool_name=name,
            tool_version=version_str,
            input=copy.deepcopy(input),
            start_time=datetime.now(timezone.utc),
        )
        failure: Optional[ToolError] = None
        output: Any = None
        try:
            output = await tool.invoke(input)
        except ToolError as err:
            failure = err
        end = datetime.now(timezone.utc)
        invocation.end_time = end
        invocation.duration_ms = max(
            0, int((end - invocation.start_time).total_seconds() * 1000)
        )
        if failure is None:
            invocation.output = copy.deepcopy(output)
        else:
            invocation.error = str(failure)
        self._record_invocation(invocation)
        if failure is not None:
            raise ToolOperationFailed(failure) from failure
        return output

    async def get_invocations(self) -> list[ToolInvocation]:
        """Return the recent invocations, oldest first."""
        return list(self._invocations)

    async def unregister(self, name: str, version: str) -> None:
        """Shut down and remove a tool, unless another tool depends on it."""
        parsed = _parse_version(version)
        key = (name, parsed)
        async with self._lock:
            if key not in self._tools:
                raise ToolNotFound(name, version)
            for (other_name, other_version), metadata in self._metadata.items():
                if (other_name, other_version) == key:
                    continue
                for dependency in metadata.dependencies:
                    if dependency.name != name:
                        continue
                    try:
                        required = version_matches(dependency.version_req, parsed)
                    except (ValueError, TypeError) as exc:
                        raise InternalRegistryError(
                            f"Invalid version requirement: {exc}"
                        ) from exc
                    if required:
                        raise InternalRegistryError(
                            f"Cannot unregister tool {name}@{version} because it is a "
                            f"dependency of {other_name}@{other_version}"
                        )
            tool = self._tools.pop(key)
            self._metadata.pop(key, None)
        try:
            await tool.shutdown()
        except ToolError as err:
            logger.error("Failed to shutdown tool %s@%s: %s", name, version, err)
        logger.info("Tool unregistered: %s@%s", name, version)

    def _validate_dependencies(self, dependencies: list[ToolDependency]) -> None:
        unresolved = []
        for dependency in dependencies:
            _check_requirement(dependency.version_req)
            if not any(
                key_name == dependency.name and version_matches(dependency.version_req, key_version)
                for key_name, key_version in self._metadata
            ):
                unresolved.append(dependency)
        if unresolved:
            raise UnresolvedDependencies(unresolved)
        for dependency in dependencies:
            self.check_circular_dependencies(dependency, set(), [])

    def check_circular_dependencies(
        self,
        dependency: ToolDependency,
        visited: set[str],
        path: list[str],
    ) -> None:
        """Raise CircularDependencies if following ``dependency`` leads back onto ``path``.

        ``visited`` and ``path`` are updated in place as the walk proceeds.
        """
        name = dependency.name
        if name in path:
            raise CircularDependencies(path[path.index(name):] + [name])
        if name in visited:
            return
        visited.add(name)
        path.append(name)
        for (key_name, _), metadata in self._metadata.items():
            if key_name == name:
                for dep in metadata.dependencies:
                    self.check_circular_dependencies(dep, visited, path)
        path.pop()

    def _record_invocation(self, invocation: ToolInvocation) -> None:
        self._invocations.append(invocation)
        excess = len(self._invocations) - self.max_invocations
        if excess > 0:
            del self._invocations[:excess]