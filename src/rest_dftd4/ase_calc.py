from __future__ import annotations

"""ASE calculator for the D4 dispersion correction through libdftd4.

Positions and cell are converted from Angstrom to Bohr; energies from Hartree
to eV. The native structure is kept between calls and updated in place when
only positions or the cell change.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
from ase.calculators.calculator import Calculator, all_changes
from ase.units import Bohr, Hartree

from .interface import get_dispersion
from .model import Model
from .param import Param
from .structure import Structure

__all__ = ["DFTD4Calculator"]

logger = logging.getLogger(__name__)

_GEOMETRY_CHANGES = {"positions", "cell"}


class DFTD4Calculator(Calculator):
    """D4 dispersion energy, forces and (for 3D periodic systems) stress.

    Parameters
    ----------
    method:
        Method name looked up in libdftd4's damping-parameter table. If
        ``None``, ``params_tweaks`` must supply the rational damping
        coefficients (s6, s8, s9, a1, a2, alp).
    mdb:
        Include the many-body (ATM) term when loading by method name.
    model_params:
        Optional ``ga``/``gc``/``wf`` overrides for the D4 model.
    """

    implemented_properties = ["energy", "free_energy", "forces", "stress"]

    default_parameters: Dict[str, Any] = {
        "method": None,
        "mdb": True,
        "params_tweaks": None,
        "model_params": None,
    }

    def __init__(
        self,
        method: Optional[str] = None,
        mdb: bool = True,
        params_tweaks: Optional[Dict[str, float]] = None,
        model_params: Optional[Dict[str, float]] = None,
        **kwargs: Any,
    ) -> None:
        if method is None and not params_tweaks:
            raise ValueError("Provide a method name or explicit damping parameters via params_tweaks.")
        self._structure: Optional[Structure] = None
        self._model: Optional[Model] = None
        self._param: Optional[Param] = None
        super().__init__(
            method=method,
            mdb=mdb,
            params_tweaks=params_tweaks,
            model_params=model_params,
            **kwargs,
        )

    def set(self, **kwargs: Any) -> Dict[str, Any]:
        changed = super().set(**kwargs)
        if changed:
            self._close("_model", "_structure", "_param")
        return changed

    def _close(self, *attrs: str) -> None:
        for attr in attrs:
            handle = getattr(self, attr, None)
            if handle is not None:
                handle.close()
                setattr(self, attr, None)

    def _get_param(self) -> Param:
        if self._param is None:
            p = self.parameters
            if p.get("params_tweaks"):
                self._param = Param(**dict(p["params_tweaks"]))
            else:
                self._param = Param(p["method"], bool(p.get("mdb", True)))
        return self._param

    def _prepare(self, atoms, system_changes) -> Structure:
        positions = atoms.get_positions() / Bohr
        pbc = np.asarray(atoms.get_pbc(), dtype=bool)
        lattice = atoms.get_cell().array / Bohr if pbc.any() else None
        if self._structure is not None and set(system_changes) <= _GEOMETRY_CHANGES:
            logger.debug("Updating native structure in place (%s)", ", ".join(sorted(system_changes)))
            self._structure.update(positions, lattice)
            return self._structure

        self._close("_model", "_structure")
        charge = float(atoms.get_initial_charges().sum())
        self._structure = Structure(
            len(atoms),
            atoms.get_atomic_numbers(),
            positions,
            charge=charge,
            lattice=lattice,
            periodic=pbc if pbc.any() else None,
        )
        self._model = Model(self._structure, **(self.parameters.get("model_params") or {}))
        return self._structure

    def calculate(self, atoms=None, properties=("energy",), system_changes=all_changes) -> None:
        super().calculate(atoms, properties, system_changes)
        atoms = self.atoms
        structure = self._prepare(atoms, system_changes)
        res = get_dispersion(structure, self._model, self._get_param(), grad=True, sigma=True)

        self.results["energy"] = res.energy * Hartree
        self.results["free_energy"] = self.results["energy"]
        self.results["forces"] = -res.gradient * Hartree / Bohr
        if all(atoms.get_pbc()):
            self.results["stress"] = res.sigma.flat[[0, 4, 8, 5, 2, 1]] / atoms.get_volume() * Hartree
