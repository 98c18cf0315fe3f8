"""Descriptor file I/O — load and write ``module.yaml`` documents.

The YAML writer does not keep comments; the patcher restores the ones
it cares about with a textual pass after each write.  String *values*
are always double-quoted and never line-wrapped so those textual
anchors (``target: "add_ons_distribution.zip"``) stay predictable.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from patchforge.models.descriptor import Descriptor

logger = logging.getLogger(__name__)


@runtime_checkable
class DescriptorIO(Protocol):
    """Protocol for descriptor persistence backends."""

    def load(self, path: Path) -> Descriptor:
        """Read the descriptor stored at *path*."""
        ...

    def write(self, descriptor: Descriptor, path: Path) -> None:
        """Serialise *descriptor* to *path*, replacing its content."""
        ...


class DescriptorFormatError(ValueError):
    """Raised when a descriptor file does not contain a YAML mapping."""


def replace_text(path: Path, text: str) -> None:
    """Replace the content of *path* with *text* in one rename.

    The text goes to a temporary file in the same directory first, so a
    failed write leaves the previous content in place.
    """
    path = Path(path)
    staged: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            delete=False,
        ) as tmp:
            staged = Path(tmp.name)
            tmp.write(text)
        if path.exists():
            shutil.copymode(path, staged)
        os.replace(staged, path)
    except OSError:
        if staged is not None:
            staged.unlink(missing_ok=True)
        raise


class _QuotedValue(str):
    """Marker for string values that must be emitted double-quoted."""


class _DescriptorDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        super().increase_indent(flow, False)


def _represent_quoted(dumper: yaml.SafeDumper, data: _QuotedValue) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style='"')


_DescriptorDumper.add_representer(_QuotedValue, _represent_quoted)


def _quote_values(node: Any) -> Any:
    """Wrap every string value (not mapping keys) for double-quoted output."""
    if isinstance(node, dict):
        return {key: _quote_values(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_quote_values(item) for item in node]
    if isinstance(node, str):
        return _QuotedValue(node)
    return node


class YamlDescriptorIO:
    """PyYAML-backed descriptor loader and writer."""

    def load(self, path: Path) -> Descriptor:
        text = Path(path).read_text(encoding="utf-8")
        document = yaml.safe_load(text)
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise DescriptorFormatError(f"{path}: expected a mapping at top level")
        return Descriptor(document)

    def write(self, descriptor: Descriptor, path: Path) -> None:
        text = yaml.dump(
            _quote_values(descriptor.document),
            Dumper=_DescriptorDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=4096,
        )
        replace_text(Path(path), text)
        logger.debug("Wrote descriptor %s", path)
