from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Tuple


class Ecosystem(Enum):
    """Manifest dialect a project uses."""

    NODE = "node"  # package.json, installs into node_modules
    DENO = "deno"  # deno.json / deno.jsonc import map

    @property
    def separator(self) -> str:
        """Separator between key and locator in the canonical form."""
        return "@" if self is Ecosystem.NODE else "="


@dataclass(frozen=True)
class DependencySpec:
    """A dependency set: key (package name or import alias) to locator."""

    ecosystem: Ecosystem
    entries: Dict[str, str] = field(default_factory=dict)
    source_file: str = ""

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def sorted_items(self) -> List[Tuple[str, str]]:
        """Pairs in ascending code point order of the key."""
        return sorted(self.entries.items(), key=lambda item: item[0])

    def sorted_keys(self) -> List[str]:
        return [key for key, _ in self.sorted_items()]

    @property
    def source_path(self) -> Path:
        return Path(self.source_file)
