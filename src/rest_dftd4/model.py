from __future__ import annotations

from typing import Any, Optional

from .error import checked_call
from .handle import NativeHandle
from .structure import Structure

__all__ = ["Model"]


class Model(NativeHandle):
    """D4 dispersion model built from a structure.

    The default model is used unless any of ``ga`` (charge scaling height),
    ``gc`` (charge scaling steepness) or ``wf`` (weighting factor) is given;
    missing ones then take the D4 defaults 3.0, 2.0 and 6.0.

    The structure is only read during construction; libdftd4 keeps what it
    needs, so the model and the structure are released independently.
    """

    _delete_symbol = "dftd4_delete_model"
    _kind = "model"

    def __init__(
        self,
        structure: Structure,
        ga: Optional[float] = None,
        gc: Optional[float] = None,
        wf: Optional[float] = None,
        lib: Any = None,
    ) -> None:
        super().__init__(lib if lib is not None else structure._lib)
        self._natoms = structure.natoms
        if ga is None and gc is None and wf is None:
            raw = checked_call(
                self._lib.dftd4_new_d4_model,
                structure.ptr,
                operation="new_d4_model",
                lib=self._lib,
            )
        else:
            raw = checked_call(
                self._lib.dftd4_custom_d4_model,
                structure.ptr,
                3.0 if ga is None else float(ga),
                2.0 if gc is None else float(gc),
                6.0 if wf is None else float(wf),
                operation="custom_d4_model",
                lib=self._lib,
            )
        self._adopt(raw)

    @classmethod
    def custom(cls, structure: Structure, ga: float, gc: float, wf: float) -> "Model":
        return cls(structure, ga=ga, gc=gc, wf=wf)

    @property
    def natoms(self) -> int:
        """Atom count of the structure the model was built for."""
        return self._natoms
