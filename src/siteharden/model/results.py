"""Value types produced and consumed by the passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class DataUri:
    mime_type: str
    is_base64: bool
    payload: str


@dataclass(slots=True)
class PassReport:
    name: str
    files_scanned: int = 0
    files_modified: int = 0
    replacements: int = 0
    assets_written: int = 0
    modified_paths: list[Path] = field(default_factory=list)

    def record_file(self, path: Path, replacements: int) -> None:
        self.files_scanned += 1
        if replacements:
            self.files_modified += 1
            self.replacements += replacements
            self.modified_paths.append(path)


@dataclass(frozen=True, slots=True)
class CspSources:
    """Hash and origin sets collected from one or more documents.

    Values are immutable; a corpus is reduced with ``|``.
    """

    style_hashes: frozenset[str] = frozenset()
    script_hashes: frozenset[str] = frozenset()
    image_hosts: frozenset[str] = frozenset()

    def __or__(self, other: CspSources) -> CspSources:
        return CspSources(
            style_hashes=self.style_hashes | other.style_hashes,
            script_hashes=self.script_hashes | other.script_hashes,
            image_hosts=self.image_hosts | other.image_hosts,
        )

    @property
    def style_source(self) -> str:
        return " ".join(sorted(self.style_hashes))

    @property
    def script_source(self) -> str:
        return " ".join(sorted(self.script_hashes))

    @property
    def image_origins(self) -> list[str]:
        return [f"https://{host}" for host in sorted(self.image_hosts)]


class PublishStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class PublishResult:
    status: PublishStatus
    target: Path | None = None
    reloaded: bool = False
    message: str = ""
