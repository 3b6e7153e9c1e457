from __future__ import annotations

from typing import Any, Optional

from .error import DFTD4ValidationError, checked_call
from .handle import NativeHandle

__all__ = ["Param"]


class Param(NativeHandle):
    """Rational (Becke-Johnson) damping parameters.

    ``Param(method="TPSS")`` loads a method from libdftd4's internal table
    (``mdb`` toggles the many-body ATM term); without ``method`` the six
    coefficients are used as given.
    """

    _delete_symbol = "dftd4_delete_param"
    _kind = "param"

    def __init__(
        self,
        method: Optional[str] = None,
        mdb: bool = True,
        *,
        s6: float = 1.0,
        s8: float = 0.0,
        s9: float = 1.0,
        a1: float = 0.0,
        a2: float = 0.0,
        alp: float = 16.0,
        lib: Any = None,
    ) -> None:
        if method is not None and "\x00" in method:
            raise DFTD4ValidationError(
                f"method name contains a NUL character: {method!r}",
                operation="load_rational_damping",
            )
        super().__init__(lib)
        if method is not None:
            raw = checked_call(
                self._lib.dftd4_load_rational_damping,
                method.encode("utf-8"),
                bool(mdb),
                operation="load_rational_damping",
                lib=self._lib,
            )
        else:
            raw = checked_call(
                self._lib.dftd4_new_rational_damping,
                float(s6),
                float(s8),
                float(s9),
                float(a1),
                float(a2),
                float(alp),
                operation="new_rational_damping",
                lib=self._lib,
            )
        self._adopt(raw)

    @classmethod
    def rational_damping(
        cls,
        s6: float = 1.0,
        s8: float = 0.0,
        s9: float = 1.0,
        a1: float = 0.0,
        a2: float = 0.0,
        alp: float = 16.0,
        lib: Any = None,
    ) -> "Param":
        return cls(s6=s6, s8=s8, s9=s9, a1=a1, a2=a2, alp=alp, lib=lib)

    @classmethod
    def load_rational_damping(cls, method: str, mdb: bool = True, lib: Any = None) -> "Param":
        """``method`` is passed to libdftd4 unchanged; unknown names fail in native code."""
        return cls(method, mdb, lib=lib)
