from __future__ import annotations

"""Runtime discovery settings for the native dftd4 shared library.

The search order mirrors the build configuration of the native bindings:
``DFTD4_DIR`` first, then ``REST_EXT_DIR`` (an installed external-dependencies
tree), then ``LD_LIBRARY_PATH``. Every variable may list several directories
separated by ``os.pathsep``.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

__all__ = [
    "ENV_DFTD4_DIR",
    "ENV_REST_EXT_DIR",
    "ENV_LIBRARY_PATH",
    "LIBRARY_NAME",
    "LibrarySearchConfig",
    "split_search_paths",
    "library_filenames",
]

ENV_DFTD4_DIR = "DFTD4_DIR"
ENV_REST_EXT_DIR = "REST_EXT_DIR"
ENV_LIBRARY_PATH = "LD_LIBRARY_PATH"

LIBRARY_NAME = "dftd4"


def split_search_paths(value: Optional[str], sep: str = os.pathsep) -> List[str]:
    """Split ``/a/lib:/b/lib`` into directories, dropping empty entries."""
    if not value:
        return []
    return [p for p in value.split(sep) if p.strip()]


def library_filenames(platform: Optional[str] = None) -> Tuple[str, ...]:
    """Shared-library file names for ``libdftd4`` on the given platform."""
    plat = platform or sys.platform
    if plat.startswith("win"):
        return (f"{LIBRARY_NAME}.dll", f"lib{LIBRARY_NAME}.dll")
    if plat == "darwin":
        return (f"lib{LIBRARY_NAME}.dylib", f"lib{LIBRARY_NAME}.so")
    return (f"lib{LIBRARY_NAME}.so",)


@dataclass(frozen=True)
class LibrarySearchConfig:
    dftd4_dir: Tuple[str, ...] = ()
    rest_ext_dir: Tuple[str, ...] = ()
    library_path: Tuple[str, ...] = ()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LibrarySearchConfig":
        env = os.environ if environ is None else environ
        return cls(
            dftd4_dir=tuple(split_search_paths(env.get(ENV_DFTD4_DIR))),
            rest_ext_dir=tuple(split_search_paths(env.get(ENV_REST_EXT_DIR))),
            library_path=tuple(split_search_paths(env.get(ENV_LIBRARY_PATH))),
        )

    def search_dirs(self) -> List[str]:
        """Configured directories in priority order, duplicates removed."""
        out: List[str] = []
        for d in (*self.dftd4_dir, *self.rest_ext_dir, *self.library_path):
            if d not in out:
                out.append(d)
        return out

    def candidates(self, platform: Optional[str] = None) -> List[Path]:
        """Candidate library files; each directory is probed before its ``lib/``."""
        names = library_filenames(platform)
        out: List[Path] = []
        for d in self.search_dirs():
            base = Path(d)
            for folder in (base, base / "lib"):
                for name in names:
                    out.append(folder / name)
        return out
