from __future__ import annotations

"""Non-recoverable variants of the wrapper API.

For call sites that have validated their inputs already and treat any
failure as fatal: the failure is logged at CRITICAL level and the process is
aborted with ``os.abort()``. Nothing is raised to the caller.
"""

import functools
import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from . import interface
from .model import Model
from .param import Param
from .structure import Structure

__all__ = [
    "abort_on_failure",
    "unwrap",
    "new_structure",
    "update_structure",
    "new_model",
    "custom_model",
    "new_rational_damping",
    "load_rational_damping",
    "get_properties",
    "get_dispersion",
    "get_pairwise_dispersion",
]

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def abort_on_failure(operation: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        logger.critical("Unrecoverable failure in %s; aborting", operation, exc_info=True)
        os.abort()


def unwrap(func: F) -> F:
    """Wrap ``func`` so that any exception aborts the process."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with abort_on_failure(func.__name__):
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


@unwrap
def new_structure(natoms, numbers, positions, charge=None, lattice=None, periodic=None) -> Structure:
    return Structure(natoms, numbers, positions, charge, lattice, periodic)


@unwrap
def update_structure(structure: Structure, positions, lattice=None) -> None:
    structure.update(positions, lattice)


@unwrap
def new_model(structure: Structure) -> Model:
    return Model(structure)


@unwrap
def custom_model(structure: Structure, ga: float, gc: float, wf: float) -> Model:
    return Model.custom(structure, ga, gc, wf)


@unwrap
def new_rational_damping(
    s6: float = 1.0, s8: float = 0.0, s9: float = 1.0, a1: float = 0.0, a2: float = 0.0, alp: float = 16.0
) -> Param:
    return Param.rational_damping(s6, s8, s9, a1, a2, alp)


@unwrap
def load_rational_damping(method: str, mdb: bool = True) -> Param:
    return Param.load_rational_damping(method, mdb)


get_properties = unwrap(interface.get_properties)
get_dispersion = unwrap(interface.get_dispersion)
get_pairwise_dispersion = unwrap(interface.get_pairwise_dispersion)
