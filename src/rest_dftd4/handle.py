from __future__ import annotations

import ctypes
import logging
from typing import Any, Optional

from . import library
from .error import DFTD4Error

__all__ = ["NativeHandle"]

logger = logging.getLogger(__name__)


class NativeHandle:
    """Exclusive owner of one opaque dftd4 object.

    Subclasses name the native destructor in ``_delete_symbol``. The object is
    deleted exactly once: by ``close()``, by leaving a ``with`` block, or as a
    last resort when the wrapper is garbage collected. Handles are never
    copied.
    """

    _delete_symbol = ""
    _kind = "handle"

    def __init__(self, lib: Any = None) -> None:
        self._lib = lib if lib is not None else library.get_library()
        self._ptr: Optional[ctypes.c_void_p] = None

    def _adopt(self, raw: Optional[int]) -> None:
        self._ptr = ctypes.c_void_p(raw)
        logger.debug("Created %s %#x", self._kind, raw or 0)

    @property
    def ptr(self) -> ctypes.c_void_p:
        if self._ptr is None:
            raise DFTD4Error(f"{self._kind} used after release", source="local")
        return self._ptr

    @property
    def closed(self) -> bool:
        return self._ptr is None

    def close(self) -> None:
        if self._ptr is None:
            return
        ptr, self._ptr = self._ptr, None
        logger.debug("Releasing %s %#x", self._kind, ptr.value or 0)
        getattr(self._lib, self._delete_symbol)(ctypes.byref(ptr))

    def __enter__(self):
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_ptr", None) is not None:
            logger.warning("%s was not closed; releasing on garbage collection", self._kind)
            self.close()

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be copied")

    def __reduce__(self):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be pickled")

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"{self.ptr.value or 0:#x}"
        return f"<{type(self).__name__} {state}>"
