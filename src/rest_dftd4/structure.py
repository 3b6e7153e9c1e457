from __future__ import annotations

"""Molecular or periodic structure owned by libdftd4.

Quantities are in Bohr. Dimensions are validated here, before any native
call: libdftd4 reads ``natoms`` entries from ``numbers``, ``3*natoms`` from
``positions`` and 9 from ``lattice`` without bounds checks.
"""

from typing import Any, Optional, Sequence

import numpy as np

from .error import DFTD4ValidationError, check_length, checked_call
from .handle import NativeHandle
from .library import bool_p, double_p, int_p

__all__ = ["Structure"]

ArrayLike = Any


def _as_doubles(values: ArrayLike) -> np.ndarray:
    return np.ascontiguousarray(values, dtype=np.float64).reshape(-1)


def _optional_ptr(arr: Optional[np.ndarray], ctype):
    return None if arr is None else arr.ctypes.data_as(ctype)


class Structure(NativeHandle):
    """Atomic numbers, positions, and optional charge/lattice/periodicity.

    Parameters
    ----------
    natoms:
        Number of atoms; fixed for the lifetime of the handle.
    numbers:
        Atomic numbers, ``natoms`` entries.
    positions:
        Cartesian coordinates in Bohr, ``(natoms, 3)`` or flattened atom-major.
    charge:
        Net charge; ``None`` means neutral.
    lattice:
        Lattice vectors in Bohr, 3x3 row-major (9 entries).
    periodic:
        Periodicity flags, 3 entries.
    """

    _delete_symbol = "dftd4_delete_structure"
    _kind = "structure"

    def __init__(
        self,
        natoms: int,
        numbers: ArrayLike,
        positions: ArrayLike,
        charge: Optional[float] = None,
        lattice: Optional[ArrayLike] = None,
        periodic: Optional[Sequence[bool]] = None,
        lib: Any = None,
    ) -> None:
        op = "new_structure"
        natoms = int(natoms)
        if natoms < 0:
            raise DFTD4ValidationError(f"Invalid number of atoms {natoms}", operation=op)
        nums = np.asarray(numbers).reshape(-1)
        check_length("numbers", nums.size, natoms, op)
        if nums.size and not np.issubdtype(nums.dtype, np.integer):
            if not np.issubdtype(nums.dtype, np.floating) or not np.all(nums == np.round(nums)):
                raise DFTD4ValidationError(
                    f"Atomic numbers must be integral, got {nums.tolist()}", operation=op
                )
        pos = _as_doubles(positions)
        check_length("positions", pos.size, 3 * natoms, op)
        lat = None
        if lattice is not None:
            lat = _as_doubles(lattice)
            check_length("lattice", lat.size, 9, op)
        pbc = None
        if periodic is not None:
            pbc = np.ascontiguousarray(periodic, dtype=np.bool_).reshape(-1)
            check_length("periodic", pbc.size, 3, op)
        # widen/narrow to the C int of the native API
        nums = np.ascontiguousarray(nums, dtype=np.intc)
        chrg = None if charge is None else np.array([float(charge)], dtype=np.float64)

        super().__init__(lib)
        self._natoms = natoms
        raw = checked_call(
            self._lib.dftd4_new_structure,
            natoms,
            nums.ctypes.data_as(int_p),
            pos.ctypes.data_as(double_p),
            _optional_ptr(chrg, double_p),
            _optional_ptr(lat, double_p),
            _optional_ptr(pbc, bool_p),
            operation=op,
            lib=self._lib,
        )
        self._adopt(raw)

    @property
    def natoms(self) -> int:
        return self._natoms

    def update(self, positions: ArrayLike, lattice: Optional[ArrayLike] = None) -> None:
        """Replace coordinates (and the lattice, if given) in place.

        The atom count cannot change; a wrongly sized array is rejected and
        the native state is left untouched.
        """
        op = "update_structure"
        pos = _as_doubles(positions)
        check_length("positions", pos.size, 3 * self._natoms, op)
        lat = None
        if lattice is not None:
            lat = _as_doubles(lattice)
            check_length("lattice", lat.size, 9, op)
        checked_call(
            self._lib.dftd4_update_structure,
            self.ptr,
            pos.ctypes.data_as(double_p),
            _optional_ptr(lat, double_p),
            operation=op,
            lib=self._lib,
        )
