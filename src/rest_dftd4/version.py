from __future__ import annotations

from typing import Tuple

from . import library

__all__ = ["decode_version", "get_api_version", "get_api_version_compact"]


def decode_version(version: int) -> Tuple[int, int, int]:
    """Split libdftd4's packed ``major*10000 + minor*100 + patch``."""
    version = int(version)
    return version // 10000, version // 100 % 100, version % 100


def get_api_version_compact() -> Tuple[int, int, int]:
    return decode_version(library.get_library().dftd4_get_version())


def get_api_version() -> str:
    """Version of the loaded libdftd4 as ``"major.minor.patch"``."""
    return "{}.{}.{}".format(*get_api_version_compact())
