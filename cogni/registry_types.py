"""Records, errors and version matching shared by the tool registry."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from semver import Version

from .tool import ToolCapability, ToolError, ToolSpec


@dataclass
class ToolDependency:
    """A dependency on another tool, named with a version requirement."""

    name: str
    version_req: str


@dataclass
class ToolMetadata:
    """Information about a registered tool."""

    name: str
    version: Version
    description: str
    capabilities: list[ToolCapability] = field(default_factory=list)
    dependencies: list[ToolDependency] = field(default_factory=list)
    spec: ToolSpec = field(default_factory=lambda: ToolSpec("", ""))

    def __post_init__(self) -> None:
        if isinstance(self.version, str):
            self.version = Version.parse(self.version)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; capabilities are not serialised."""
        return {
            "name": self.name,
            "version": str(self.version),
            "description": self.description,
            "dependencies": [asdict(dep) for dep in self.dependencies],
            "spec": self.spec.to_dict(),
        }


def _timestamp(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat()
    return text[: -len("+00:00")] + "Z" if text.endswith("+00:00") else text


@dataclass
class ToolInvocation:
    """A record of one call to a registered tool."""

    tool_name: str
    tool_version: str
    input: Any
    output: Any = None
    error: Optional[str] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form with UTC timestamps in RFC 3339."""
        return {
            "tool_name": self.tool_name,
            "tool_version": self.tool_version,
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "start_time": _timestamp(self.start_time),
            "end_time": _timestamp(self.end_time),
            "duration_ms": self.duration_ms,
        }


class RegistryError(Exception):
    """Base class for errors raised by the tool registry."""


class InvalidToolName(RegistryError):
    """The tool name is empty or holds characters other than letters, digits, '-' and '_'."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid tool name: {name}")
        self.name = name


class InvalidToolVersion(RegistryError):
    """A version or version requirement could not be parsed."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Invalid tool version: {version}")
        self.version = version


class ToolNotFound(RegistryError):
    """No tool is registered under the name (and version, when given)."""

    def __init__(self, name: str, version: Optional[str] = None) -> None:
        shown = "latest" if version is None else version
        super().__init__(f"Tool not found: {name} (version {shown})")
        self.name = name
        self.version = version


class ToolAlreadyExists(RegistryError):
    """A tool with this name and version is already registered."""

    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"Tool already exists: {name} (version {version})")
        self.name = name
        self.version = version


class UnresolvedDependencies(RegistryError):
    """Some dependencies match no registered tool."""

    def __init__(self, dependencies: list[ToolDependency]) -> None:
        listed = ", ".join(f"{d.name} {d.version_req}" for d in dependencies)
        super().__init__(f"Tool has unresolved dependencies: {listed}")
        self.dependencies = list(dependencies)


class CircularDependencies(RegistryError):
    """The dependencies form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Tool has circular dependencies: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class InternalRegistryError(RegistryError):
    """The registry cannot carry out an otherwise valid request."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Internal registry error: {message}")
        self.message = message


class ToolOperationFailed(RegistryError):
    """A tool raised while being initialised or invoked."""

    def __init__(self, error: ToolError) -> None:
        super().__init__(f"Tool operation failed: {error}")
        self.error = error


# ---- version requirements -----------------------------------------------

_OPERATOR_RE = re.compile(r"(>=|<=|=|>|<|~|\^)?\s*(.*)", re.DOTALL)
_PART = r"(0|[1-9]\d*|\*|x|X)"
_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_VERSION_RE = re.compile(
    rf"{_PART}(?:\.{_PART})?(?:\.{_PART})?(?:-({_IDENT}))?(?:\+({_IDENT}))?"
)
_WILDCARDS = {"*", "x", "X"}


@dataclass(frozen=True)
class _Comparator:
    op: str
    major: int
    minor: Optional[int]
    patch: Optional[int]
    pre: Optional[str]

    def _full(self) -> Version:
        return Version(self.major, self.minor or 0, self.patch or 0, prerelease=self.pre)

    def _exact(self, v: Version) -> bool:
        if self.minor is None:
            return v.major == self.major
        if self.patch is None:
            return (v.major, v.minor) == (self.major, self.minor)
        return v.compare(self._full()) == 0

    def matches(self, v: Version) -> bool:
        major, minor, patch = self.major, self.minor, self.patch
        if self.op == "=":
            return self._exact(v)
        if self.op == ">":
            if minor is None:
                return v.major > major
            if patch is None:
                return (v.major, v.minor) > (major, minor)
            return v > self._full()
        if self.op == ">=":
            return v >= self._full()
        if self.op == "<":
            if minor is None:
                return v.major < major
            if patch is None:
                return (v.major, v.minor) < (major, minor)
            return v < self._full()
        if self.op == "<=":
            if minor is None:
                return v.major <= major
            if patch is None:
                return (v.major, v.minor) <= (major, minor)
            return v <= self._full()
        if self.op == "~":
            if patch is None:
                return self._exact(v)
            return v >= self._full() and (v.major, v.minor) == (major, minor)
        # caret
        if minor is None:
            return v.major == major
        if patch is None:
            if major > 0:
                return v.major == major and v.minor >= minor
            return v.major == 0 and v.minor == minor
        if v < self._full():
            return False
        if major > 0:
            return v.major == major
        if minor > 0:
            return v.major == 0 and v.minor == minor
        return (v.major, v.minor, v.patch) == (0, 0, patch)

    def allows_prerelease_of(self, v: Version) -> bool:
        return (
            self.pre is not None
            and (self.major, self.minor, self.patch) == (v.major, v.minor, v.patch)
        )


def _parse_comparator(text: str) -> Optional[_Comparator]:
    """Parse one comparator; ``None`` stands for a comparator that matches anything."""
    op_match = _OPERATOR_RE.fullmatch(text)
    op, rest = op_match.group(1), op_match.group(2).strip()
    parsed = _VERSION_RE.fullmatch(rest)
    if not rest or parsed is None:
        raise ValueError(f"invalid version requirement: {text!r}")
    major, minor, patch, pre, _build = parsed.groups()
    parts = [major, minor, patch]
    if any(p in _WILDCARDS for p in parts if p is not None):
        if op not in (None, "="):
            raise ValueError(f"unexpected wildcard after operator: {text!r}")
        if pre is not None:
            raise ValueError(f"wildcard with pre-release: {text!r}")
        first = next(i for i, p in enumerate(parts) if p in _WILDCARDS)
        if any(p is not None and p not in _WILDCARDS for p in parts[first:]):
            raise ValueError(f"number after wildcard: {text!r}")
        if first == 0:
            return None
        numbers = [int(p) for p in parts[:first]] + [None] * (3 - first)
        return _Comparator("=", numbers[0], numbers[1], numbers[2], None)
    if pre is not None and patch is None:
        raise ValueError(f"pre-release needs a full version: {text!r}")
    return _Comparator(
        op or "^",
        int(major),
        None if minor is None else int(minor),
        None if patch is None else int(patch),
        pre,
    )


def version_matches(requirement: str, version: Union[str, Version]) -> bool:
    """Return whether ``version`` satisfies a Cargo-style ``requirement``.

    Comparators are separated by commas and must all match. A bare version
    means a caret requirement. Pre-release versions match only when a
    comparator names a pre-release of the same major.minor.patch.
    Raises ValueError when either argument cannot be parsed.
    """
    parsed = Version.parse(version) if isinstance(version, str) else version
    v = Version(parsed.major, parsed.minor, parsed.patch, prerelease=parsed.prerelease)
    if not requirement.strip():
        raise ValueError("empty version requirement")
    comparators = []
    for piece in requirement.split(","):
        piece = piece.strip()
        if not piece:
            raise ValueError(f"invalid version requirement: {requirement!r}")
        comparator = _parse_comparator(piece)
        if comparator is not None:
            comparators.append(comparator)
    if not all(c.matches(v) for c in comparators):
        return False
    if v.prerelease:
        return any(c.allows_prerelease_of(v) for c in comparators)
    return True