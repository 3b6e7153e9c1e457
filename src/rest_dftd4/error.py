from __future__ import annotations

"""Error object of the dftd4 C API and the wrapper's single failure type.

A native error handle is allocated for every fallible native call, passed to
exactly one call, polled, and released on every exit path (``checked_call``).
Argument validation that fails before any native call raises
``DFTD4ValidationError``, a subclass of the same ``DFTD4Error``, so callers
have one exception type to catch.
"""

import ctypes
import logging
from typing import Any, Callable, Optional

from . import library

__all__ = [
    "ERROR_BUFFER_SIZE",
    "DFTD4Error",
    "DFTD4ValidationError",
    "ErrorHandle",
    "checked_call",
    "check_length",
]

logger = logging.getLogger(__name__)

ERROR_BUFFER_SIZE = 512


class DFTD4Error(RuntimeError):
    """Failure reported by libdftd4 (``source="native"``) or by the wrapper (``"local"``)."""

    def __init__(self, message: str, source: str = "native", operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.operation = operation

    def check(self) -> bool:
        return True

    def get_message(self) -> str:
        return self.message

    def __reduce__(self):
        return (DFTD4Error, (self.message, self.source, self.operation))

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class DFTD4ValidationError(DFTD4Error, ValueError):
    """Argument rejected before crossing into native code."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message, source="local", operation=operation)

    def __reduce__(self):
        return (DFTD4ValidationError, (self.message, self.operation))


def check_length(name: str, actual: int, expected: int, operation: Optional[str] = None) -> None:
    if actual != expected:
        raise DFTD4ValidationError(
            f"Invalid dimension for {name}, expected {expected}, got {actual}",
            operation=operation,
        )


class ErrorHandle:
    """Owns one native ``dftd4_error``; released exactly once."""

    def __init__(self, lib: Any = None) -> None:
        self._lib = lib if lib is not None else library.get_library()
        self._ptr = ctypes.c_void_p(self._lib.dftd4_new_error())

    @property
    def ptr(self) -> ctypes.c_void_p:
        if self._ptr is None:
            raise DFTD4Error("error handle used after release", source="local")
        return self._ptr

    @property
    def released(self) -> bool:
        return self._ptr is None

    def check(self) -> bool:
        return bool(self._lib.dftd4_check_error(self.ptr))

    def get_message(self) -> str:
        """Native error message, at most ``ERROR_BUFFER_SIZE`` bytes; empty if unset."""
        if not self.check():
            return ""
        buffer = ctypes.create_string_buffer(ERROR_BUFFER_SIZE)
        size = ctypes.c_int(ERROR_BUFFER_SIZE)
        self._lib.dftd4_get_error(self.ptr, buffer, ctypes.byref(size))
        return buffer.value.decode("utf-8", errors="replace")

    def release(self) -> None:
        if self._ptr is None:
            return
        ptr, self._ptr = self._ptr, None
        self._lib.dftd4_delete_error(ctypes.byref(ptr))

    def __enter__(self) -> "ErrorHandle":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.release()

    def __del__(self) -> None:
        if getattr(self, "_ptr", None) is not None:
            self.release()


def checked_call(
    func: Callable[..., Any],
    *args: Any,
    operation: Optional[str] = None,
    lib: Any = None,
) -> Any:
    """Run ``func(error, *args)`` under a fresh error handle.

    Returns the native return value, or raises ``DFTD4Error`` with the native
    message. The handle is released whether or not the call failed.
    """
    with ErrorHandle(lib) as error:
        result = func(error.ptr, *args)
        if error.check():
            msg = error.get_message()
            logger.debug("%s failed in native code: %s", operation or "dftd4 call", msg)
            raise DFTD4Error(msg, source="native", operation=operation)
    return result
