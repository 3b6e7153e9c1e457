from __future__ import annotations

"""Torch autograd bridge to the libdftd4 dispersion energy.

The energy is evaluated natively together with its analytical gradient; the
backward pass returns that gradient, so a D4 term can be added to a torch
energy expression and differentiated w.r.t. positions. Positions in Bohr,
energy in Hartree. Higher derivatives are not available.
"""

from typing import Optional

import numpy as np
import torch

from .interface import get_dispersion
from .model import Model
from .param import Param
from .structure import Structure

Tensor = torch.Tensor

__all__ = ["DispersionEnergy", "dispersion_energy"]


class DispersionEnergy(torch.autograd.Function):
    @staticmethod
    def forward(ctx, positions: Tensor, numbers: Tensor, param: Param, charge: Optional[float]) -> Tensor:
        nat = int(numbers.shape[-1])
        pos = positions.detach().to("cpu", torch.float64).numpy()
        nums = numbers.detach().to("cpu").numpy().astype(np.intc)
        with Structure(nat, nums, pos, charge) as structure, Model(structure) as model:
            res = get_dispersion(structure, model, param, grad=True)
        gradient = torch.from_numpy(res.gradient).to(device=positions.device, dtype=positions.dtype)
        ctx.save_for_backward(gradient)
        return positions.new_tensor(res.energy)

    @staticmethod
    def backward(ctx, grad_output: Tensor):
        (gradient,) = ctx.saved_tensors
        return grad_output * gradient, None, None, None


def dispersion_energy(
    numbers: Tensor,
    positions: Tensor,
    param: Param,
    charge: Optional[float] = None,
) -> Tensor:
    """D4 energy of one molecule.

    numbers: (nat,) atomic numbers
    positions: (nat, 3) Bohr
    returns: scalar tensor (Hartree) differentiable w.r.t. positions
    """
    if positions.shape != (numbers.shape[-1], 3):
        raise ValueError(
            f"positions must be shape ({numbers.shape[-1]}, 3), got {tuple(positions.shape)}"
        )
    return DispersionEnergy.apply(positions, numbers, param, charge)
