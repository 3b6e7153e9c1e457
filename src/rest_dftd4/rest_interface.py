from __future__ import annotations

"""Fortran-callable entry point ``calc_dftd4_rest_``.

Every argument is passed by address, as gfortran does for an ``external``
subroutine without ``bind(c)``:

    call calc_dftd4_rest(num, nat, xyz, charge, uhf, method, len(method), &
                         energy, gradient, sigma)

``num`` holds ``nat`` atomic numbers, ``xyz`` ``3*nat`` coordinates in Bohr
(x, y, z per atom), ``charge`` may be a null pointer (neutral), ``uhf`` is
accepted and ignored, ``method`` is a character buffer of ``method_len``
bytes without a terminating NUL, decoded as UTF-8 and used as is. Energy,
gradient (``3*nat``) and sigma (9) are written into the caller's buffers.

The caller guarantees valid, correctly sized buffers; they are not checked.
The calling convention has no failure channel, so any failure inside the
entry point aborts the process. Damping parameters are always loaded with the
many-body (ATM) term enabled.

A host program obtains the native address with :func:`entry_point_address`.
"""

import ctypes
import logging

import numpy as np

from . import fatal
from .model import Model
from .param import Param
from .structure import Structure
from .interface import get_dispersion

__all__ = [
    "CALC_DFTD4_REST_PROTOTYPE",
    "calc_dftd4_rest_",
    "calc_dftd4_rest_callback",
    "entry_point_address",
]

logger = logging.getLogger(__name__)

_int_p = ctypes.POINTER(ctypes.c_int)
_double_p = ctypes.POINTER(ctypes.c_double)
_char_p = ctypes.POINTER(ctypes.c_char)

CALC_DFTD4_REST_PROTOTYPE = ctypes.CFUNCTYPE(
    None,
    _int_p,     # num
    _int_p,     # num_size
    _double_p,  # xyz
    _double_p,  # charge (nullable)
    _int_p,     # uhf (unused)
    _char_p,    # method
    _int_p,     # method_len
    _double_p,  # energy
    _double_p,  # gradient
    _double_p,  # sigma
)


def _borrow(ptr, ctype, count: int) -> np.ndarray:
    """View ``count`` elements behind a raw pointer without copying."""
    return np.ctypeslib.as_array(ctypes.cast(ptr, ctypes.POINTER(ctype)), shape=(count,))


def calc_dftd4_rest_(num, num_size, xyz, charge, uhf, method, method_len, energy, gradient, sigma) -> None:
    with fatal.abort_on_failure("calc_dftd4_rest_"):
        natoms = int(ctypes.cast(num_size, _int_p)[0])
        numbers = _borrow(num, ctypes.c_int, natoms)
        coords = _borrow(xyz, ctypes.c_double, 3 * natoms)
        nbytes = int(ctypes.cast(method_len, _int_p)[0])
        name = ctypes.string_at(method, nbytes).decode("utf-8")
        charge_ptr = ctypes.cast(charge, _double_p)
        net_charge = charge_ptr[0] if charge_ptr else None
        logger.debug("calc_dftd4_rest_: nat=%d method=%s charge=%s", natoms, name, net_charge)

        with Structure(natoms, numbers, coords, net_charge) as structure, Model(
            structure
        ) as model, Param.load_rational_damping(name, True) as param:
            result = get_dispersion(structure, model, param, grad=True, sigma=True)

        ctypes.cast(energy, _double_p)[0] = result.energy
        _borrow(gradient, ctypes.c_double, 3 * natoms)[:] = result.gradient.reshape(-1)
        _borrow(sigma, ctypes.c_double, 9)[:] = result.sigma.reshape(-1)


calc_dftd4_rest_callback = CALC_DFTD4_REST_PROTOTYPE(calc_dftd4_rest_)


def entry_point_address() -> int:
    """Native address of ``calc_dftd4_rest_``, valid while this module is loaded."""
    return ctypes.cast(calc_dftd4_rest_callback, ctypes.c_void_p).value
