from __future__ import annotations

"""ctypes binding of the dftd4 C API.

Every native symbol used by the wrapper gets its ``argtypes``/``restype`` set
once, when the shared object is loaded. Handles are opaque ``void*``.
"""

import ctypes
import ctypes.util
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LIBRARY_NAME, LibrarySearchConfig

__all__ = [
    "DFTD4LibraryNotFound",
    "find_library_path",
    "load_library",
    "get_library",
    "dftd4_library_available",
    "get_library_info",
]

logger = logging.getLogger(__name__)

_handle = ctypes.c_void_p
_handle_p = ctypes.POINTER(ctypes.c_void_p)
int_p = ctypes.POINTER(ctypes.c_int)
double_p = ctypes.POINTER(ctypes.c_double)
bool_p = ctypes.POINTER(ctypes.c_bool)

# name -> (restype, argtypes)
_SIGNATURES = {
    "dftd4_get_version": (ctypes.c_int, []),
    "dftd4_new_error": (_handle, []),
    "dftd4_check_error": (ctypes.c_int, [_handle]),
    "dftd4_get_error": (None, [_handle, ctypes.c_char_p, int_p]),
    "dftd4_delete_error": (None, [_handle_p]),
    "dftd4_new_structure": (
        _handle,
        [_handle, ctypes.c_int, int_p, double_p, double_p, double_p, bool_p],
    ),
    "dftd4_update_structure": (None, [_handle, _handle, double_p, double_p]),
    "dftd4_delete_structure": (None, [_handle_p]),
    "dftd4_new_d4_model": (_handle, [_handle, _handle]),
    "dftd4_custom_d4_model": (
        _handle,
        [_handle, _handle, ctypes.c_double, ctypes.c_double, ctypes.c_double],
    ),
    "dftd4_delete_model": (None, [_handle_p]),
    "dftd4_new_rational_damping": (_handle, [_handle] + [ctypes.c_double] * 6),
    "dftd4_load_rational_damping": (_handle, [_handle, ctypes.c_char_p, ctypes.c_bool]),
    "dftd4_delete_param": (None, [_handle_p]),
    "dftd4_get_properties": (
        None,
        [_handle, _handle, _handle, double_p, double_p, double_p, double_p],
    ),
    "dftd4_get_dispersion": (
        None,
        [_handle, _handle, _handle, _handle, double_p, double_p, double_p],
    ),
    "dftd4_get_pairwise_dispersion": (
        None,
        [_handle, _handle, _handle, _handle, double_p, double_p],
    ),
}

_LIBRARY: Optional[ctypes.CDLL] = None


class DFTD4LibraryNotFound(OSError):
    """Raised when no loadable ``libdftd4`` shared object can be located."""


def find_library_path(config: Optional[LibrarySearchConfig] = None) -> str:
    """Resolve the shared library from the configured directories.

    Falls back to ``ctypes.util.find_library`` when none of the configured
    directories contains the library.
    """
    cfg = config or LibrarySearchConfig.from_env()
    for candidate in cfg.candidates():
        if candidate.exists():
            path = str(candidate.resolve())
            logger.debug("Found %s at %s", LIBRARY_NAME, path)
            return path
    found = ctypes.util.find_library(LIBRARY_NAME)
    if found:
        logger.debug("Found %s via system search: %s", LIBRARY_NAME, found)
        return found
    dirs = cfg.search_dirs()
    raise DFTD4LibraryNotFound(
        f"lib{LIBRARY_NAME} shared library not found; searched {dirs if dirs else 'no directories'} "
        "and the system library path. Set DFTD4_DIR or REST_EXT_DIR to the directory containing it."
    )


def _configure(lib: ctypes.CDLL) -> ctypes.CDLL:
    for name, (restype, argtypes) in _SIGNATURES.items():
        try:
            func = getattr(lib, name)
        except AttributeError as exc:
            raise OSError(f"{lib._name} does not export {name}; dftd4 C API too old?") from exc
        func.restype = restype
        func.argtypes = argtypes
    return lib


def load_library(path: Optional[str | Path] = None) -> ctypes.CDLL:
    """Load and configure ``libdftd4``; an explicit path bypasses the search."""
    target = str(path) if path is not None else find_library_path()
    logger.debug("Loading %s from %s", LIBRARY_NAME, target)
    return _configure(ctypes.CDLL(target))


def get_library() -> ctypes.CDLL:
    """Process-wide library instance, loaded on first use."""
    global _LIBRARY
    if _LIBRARY is None:
        _LIBRARY = load_library()
    return _LIBRARY


def dftd4_library_available() -> bool:
    try:
        get_library()
    except OSError:
        return False
    return True


def get_library_info(config: Optional[LibrarySearchConfig] = None) -> Dict[str, Any]:
    """Describe where the library was looked for and what was found."""
    cfg = config or LibrarySearchConfig.from_env()
    info: Dict[str, Any] = {"search_dirs": cfg.search_dirs(), "path": None, "version": None}
    try:
        info["path"] = find_library_path(cfg)
    except DFTD4LibraryNotFound:
        return info
    try:
        version = int(load_library(info["path"]).dftd4_get_version())
    except OSError as exc:
        logger.debug("Library at %s is not loadable: %s", info["path"], exc)
        return info
    from .version import decode_version

    info["version"] = decode_version(version)
    return info

