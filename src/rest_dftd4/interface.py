from __future__ import annotations

"""Property, energy and pairwise-energy evaluation through libdftd4.

Output buffers are allocated here, sized from the structure's atom count, and
handed to a single native call. On failure every buffer is dropped and
``DFTD4Error`` is raised; there is no partial result.

Shapes of the returned arrays (flat native layout, row-major):
 - per-atom quantities: (nat,)
 - C6 and pairwise energies: (nat, nat)
 - gradient: (nat, 3); stress/virial sigma: (3, 3)
"""

from typing import NamedTuple, Optional

import numpy as np

from .error import DFTD4Error, DFTD4ValidationError, checked_call
from .library import double_p
from .model import Model
from .param import Param
from .structure import Structure

__all__ = [
    "DispersionProperties",
    "DispersionResult",
    "PairwiseDispersion",
    "get_properties",
    "get_dispersion",
    "get_pairwise_dispersion",
]


class DispersionProperties(NamedTuple):
    cn: np.ndarray
    charges: np.ndarray
    c6: np.ndarray
    polarizabilities: np.ndarray


class DispersionResult(NamedTuple):
    energy: float
    gradient: Optional[np.ndarray]
    sigma: Optional[np.ndarray]


class PairwiseDispersion(NamedTuple):
    pair_energy2: np.ndarray
    pair_energy3: np.ndarray


def _ptr(arr: Optional[np.ndarray]):
    return None if arr is None else arr.ctypes.data_as(double_p)


def _check_model(structure: Structure, model: Model, operation: str) -> None:
    if model.natoms != structure.natoms:
        raise DFTD4ValidationError(
            f"model was built for {model.natoms} atoms, structure has {structure.natoms}",
            operation=operation,
        )


def _check_same_library(operation: str, structure: Structure, *others) -> None:
    for other in others:
        if other._lib is not structure._lib:
            raise DFTD4Error(
                f"{other._kind} belongs to a different dftd4 library instance",
                source="local",
                operation=operation,
            )


def get_properties(structure: Structure, model: Model) -> DispersionProperties:
    """Coordination numbers, partial charges, C6 coefficients and static polarizabilities."""
    op = "get_properties"
    _check_model(structure, model, op)
    _check_same_library(op, structure, model)
    nat = structure.natoms
    cn = np.zeros(nat, dtype=np.float64)
    charges = np.zeros(nat, dtype=np.float64)
    c6 = np.zeros((nat, nat), dtype=np.float64)
    alpha = np.zeros(nat, dtype=np.float64)
    checked_call(
        structure._lib.dftd4_get_properties,
        structure.ptr,
        model.ptr,
        _ptr(cn),
        _ptr(charges),
        _ptr(c6),
        _ptr(alpha),
        operation=op,
        lib=structure._lib,
    )
    return DispersionProperties(cn, charges, c6, alpha)


def get_dispersion(
    structure: Structure,
    model: Model,
    param: Param,
    grad: bool = False,
    sigma: bool = False,
) -> DispersionResult:
    """Dispersion energy and, on request, its gradient and stress (virial).

    Derivative buffers are only allocated when requested; otherwise a null
    pointer is passed and the field is ``None``.
    """
    op = "get_dispersion"
    _check_model(structure, model, op)
    _check_same_library(op, structure, model, param)
    nat = structure.natoms
    energy = np.zeros(1, dtype=np.float64)
    gradient = np.zeros((nat, 3), dtype=np.float64) if grad else None
    virial = np.zeros((3, 3), dtype=np.float64) if sigma else None
    checked_call(
        structure._lib.dftd4_get_dispersion,
        structure.ptr,
        model.ptr,
        param.ptr,
        _ptr(energy),
        _ptr(gradient),
        _ptr(virial),
        operation=op,
        lib=structure._lib,
    )
    return DispersionResult(float(energy[0]), gradient, virial)


def get_pairwise_dispersion(structure: Structure, model: Model, param: Param) -> PairwiseDispersion:
    """Two-body and three-body (ATM) energy contributions per atom pair.

    The matrices are returned exactly as libdftd4 fills them; no symmetrisation.
    """
    op = "get_pairwise_dispersion"
    _check_model(structure, model, op)
    _check_same_library(op, structure, model, param)
    nat = structure.natoms
    pair2 = np.zeros((nat, nat), dtype=np.float64)
    pair3 = np.zeros((nat, nat), dtype=np.float64)
    checked_call(
        structure._lib.dftd4_get_pairwise_dispersion,
        structure.ptr,
        model.ptr,
        param.ptr,
        _ptr(pair2),
        _ptr(pair3),
        operation=op,
        lib=structure._lib,
    )
    return PairwiseDispersion(pair2, pair3)
