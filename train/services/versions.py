"""Version propagation for Maven build descriptors.

pom.xml files are rewritten line by line rather than parsed: the files belong
to the services, and a parse/serialize round trip would reformat them. Only
the text between the version tags changes and the rest of the file is
preserved byte for byte.

Per descriptor kind:
- root (pom.xml at the service root): the project's own version, once.
- submodule: the version inside <parent>, once; plus the module's own
  project version if it declares one, once, under a separate guard.
- any descriptor: every property in <properties> whose tag name contains the
  property pattern gets the new version (no guard).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from train.core.result import Err, Ok, Result
from train.services.errors import TrainError

DESCRIPTOR_NAME = "pom.xml"

# Opening tags that may precede the project <version> while it still counts as
# a direct child of <project> (the <project> line itself is one of them).
_DIRECT_CHILD_LIMIT = 4

_SKIPPED_DIRS = frozenset({"target", "node_modules"})

_VERSION_INPUT_RE = re.compile(r"^[1-9]\d*$")
_VERSION_OPEN = "<version>"
_VERSION_CLOSE = "</version>"

DescriptorKind = Literal["root", "submodule"]


@dataclass(frozen=True, slots=True)
class DescriptorRewrite:
    path: Path
    kind: DescriptorKind
    project_version: bool
    parent_version: bool
    properties: int

    @property
    def changed_fields(self) -> int:
        return int(self.project_version) + int(self.parent_version) + self.properties


@dataclass(slots=True)
class _DescriptorContext:
    """Where the current line sits inside the descriptor."""

    in_project: bool = False
    in_parent: bool = False
    in_properties: bool = False
    opened_tags: int = 0
    project_done: bool = False
    parent_done: bool = False

    def advance(self, line: str) -> None:
        """Enter the blocks that open on this line."""
        trimmed = line.strip()
        if "<project" in line:
            self.in_project = True
            self.opened_tags = 0
        if "<parent>" in line:
            self.in_parent = True
        if "<properties>" in line:
            self.in_properties = True

        if self.at_project_level and "<" in trimmed:
            if "</" not in trimmed and _VERSION_OPEN not in trimmed:
                self.opened_tags += 1

    def leave(self, line: str) -> None:
        """Leave the blocks that close on this line, once its fields are rewritten."""
        if "</parent>" in line:
            self.in_parent = False
        if "</properties>" in line:
            self.in_properties = False

    @property
    def at_project_level(self) -> bool:
        return self.in_project and not self.in_parent and not self.in_properties

    @property
    def near_project_top(self) -> bool:
        return self.at_project_level and self.opened_tags <= _DIRECT_CHILD_LIMIT


def normalize_version(version: str) -> Result[str, TrainError]:
    """Turn a release number ("12") into a descriptor version ("12.0")."""
    v = version.strip()
    if not _VERSION_INPUT_RE.match(v):
        return Err(
            TrainError(
                kind="validation",
                message=f"invalid release version: {version!r}",
                hint="expected a positive integer, e.g. 12",
            )
        )
    return Ok(f"{v}.0")


def scan(directory: Path) -> list[Path]:
    """All descriptors under directory, in a stable depth-first order.

    Hidden directories and Maven output directories are not searched; Maven
    copies pom.xml into target/ while packaging.
    """
    found: list[Path] = []
    for root, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in _SKIPPED_DIRS
        )
        if DESCRIPTOR_NAME in filenames:
            found.append(Path(root) / DESCRIPTOR_NAME)
    return found


def classify(path: Path, service_root: Path) -> DescriptorKind:
    if path.parent.resolve() == service_root.resolve():
        return "root"
    return "submodule"


def _replace_version(line: str, new_version: str) -> tuple[str, bool]:
    """Replace the value of a single-line <version>x</version> element."""
    trimmed = line.strip()
    start = trimmed.find(_VERSION_OPEN)
    end = trimmed.find(_VERSION_CLOSE)
    if start < 0 or end < 0:
        return line, False
    start += len(_VERSION_OPEN)
    if end <= start:
        return line, False
    current = trimmed[start:end]
    old = f"{_VERSION_OPEN}{current}{_VERSION_CLOSE}"
    return line.replace(old, f"{_VERSION_OPEN}{new_version}{_VERSION_CLOSE}", 1), True


def _replace_property(line: str, pattern: str, new_version: str) -> tuple[str, bool]:
    """Replace the text of <name>value</name> when name contains pattern."""
    trimmed = line.strip()
    if pattern not in trimmed:
        return line, False

    tag_start = trimmed.find("<")
    tag_end = trimmed.find(">")
    if tag_start < 0 or tag_end <= tag_start:
        return line, False

    tag = trimmed[tag_start + 1 : tag_end]
    # Closing and self-closing tags carry no value.
    if tag.startswith("/") or tag.endswith("/") or pattern not in tag:
        return line, False

    rest = trimmed[tag_end + 1 :]
    value_end = rest.find("<")
    if value_end <= 0:
        return line, False

    old_value = rest[:value_end]
    return line.replace(f">{old_value}<", f">{new_version}<", 1), True


def rewrite_text(
    text: str,
    new_version: str,
    *,
    is_root: bool,
    property_pattern: str | None,
) -> tuple[str, bool, bool, int]:
    """Rewrite descriptor text.

    Returns:
        (new_text, project_version_rewritten, parent_version_rewritten,
        property_rewrites)
    """
    lines = text.split("\n")
    ctx = _DescriptorContext()
    properties = 0

    for i, line in enumerate(lines):
        ctx.advance(line)
        trimmed = line.strip()

        if _VERSION_OPEN in trimmed and _VERSION_CLOSE in trimmed:
            if not is_root and ctx.in_parent and not ctx.parent_done:
                lines[i], ctx.parent_done = _replace_version(line, new_version)
            elif ctx.near_project_top and not ctx.project_done:
                lines[i], ctx.project_done = _replace_version(line, new_version)

        if property_pattern and ctx.in_properties:
            lines[i], replaced = _replace_property(lines[i], property_pattern, new_version)
            properties += int(replaced)

        ctx.leave(line)

    return "\n".join(lines), ctx.project_done, ctx.parent_done, properties


def rewrite(
    path: Path,
    new_version: str,
    *,
    is_root: bool,
    property_pattern: str | None,
) -> Result[DescriptorRewrite, TrainError]:
    """Rewrite one descriptor in place; unchanged files are left untouched."""
    try:
        original = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(TrainError(kind="io", message=f"failed to read {path}", hint=str(e)))

    text, project_done, parent_done, properties = rewrite_text(
        original, new_version, is_root=is_root, property_pattern=property_pattern
    )

    if text != original:
        try:
            path.write_bytes(text.encode("utf-8"))
        except OSError as e:
            return Err(TrainError(kind="io", message=f"failed to write {path}", hint=str(e)))

    return Ok(
        DescriptorRewrite(
            path=path,
            kind="root" if is_root else "submodule",
            project_version=project_done,
            parent_version=parent_done,
            properties=properties,
        )
    )


def propagate(
    service_root: Path,
    version: str,
    *,
    property_pattern: str | None = None,
) -> Result[list[DescriptorRewrite], TrainError]:
    """Set every descriptor of a service to the release version.

    Args:
        service_root: Working copy of the service.
        version: Release number as typed by the operator ("12").
        property_pattern: Substring selecting version properties to update.

    Returns:
        Ok(rewrites) in scan order (empty when the service has no pom.xml),
        Err(TrainError) on invalid version or the first I/O failure.
    """
    normalized = normalize_version(version)
    if isinstance(normalized, Err):
        return normalized

    rewrites: list[DescriptorRewrite] = []
    for path in scan(service_root):
        result = rewrite(
            path,
            normalized.value,
            is_root=classify(path, service_root) == "root",
            property_pattern=property_pattern,
        )
        if isinstance(result, Err):
            return result
        rewrites.append(result.value)
    return Ok(rewrites)
