import ctypes
import sys
from pathlib import Path

import pytest

# Ensure local src directory is importable as package root for rest_dftd4
root = Path(__file__).resolve().parents[1]
src = root / 'src'
if str(src) not in sys.path:
    sys.path.insert(0, str(src))


def _addr(ptr):
    return ptr.value if isinstance(ptr, ctypes.c_void_p) else ptr


class FakeNative:
    """Recording stand-in for libdftd4's C API.

    Handles are integers wrapped by the bindings in ``c_void_p``. Releasing a
    handle twice, or using one that is not live, fails the test. ``fail`` maps
    a C function name to the message the next such call sets on its error.
    Output buffers are filled with simple closed-form values.
    """

    version = 30601
    methods = {b"TPSS", b"SCAN", b"PBE0"}

    def __init__(self):
        self._next = 0x1000
        self.live = {}
        self.released = []
        self.calls = []
        self.errors = {}
        self.fail = {}
        self.structures = {}
        self.models = {}
        self.params = {}
        self.error_buffer_sizes = []
        self.dispersion_nulls = []

    # -- bookkeeping -------------------------------------------------------
    def _new(self, kind):
        self._next += 0x10
        self.live[self._next] = kind
        return self._next

    def _use(self, ptr, kind):
        addr = _addr(ptr)
        assert self.live.get(addr) == kind, f"{kind} {addr!r} is not a live handle"
        return addr

    def _delete(self, ref, kind):
        handle = ref._obj
        addr = handle.value
        if addr is None:
            return
        assert self.live.get(addr) == kind, f"release of {kind} {addr:#x} that is not live"
        del self.live[addr]
        self.released.append((kind, addr))
        handle.value = None

    def _enter(self, name, err):
        self.calls.append(name)
        addr = self._use(err, "error")
        if name in self.fail:
            self.errors[addr] = self.fail[name]
            return False
        return True

    def live_count(self, kind):
        return sum(1 for k in self.live.values() if k == kind)

    def released_count(self, kind):
        return sum(1 for k, _ in self.released if k == kind)

    # -- error object ------------------------------------------------------
    def dftd4_get_version(self):
        self.calls.append("dftd4_get_version")
        return self.version

    def dftd4_new_error(self):
        return self._new("error")

    def dftd4_check_error(self, err):
        return 1 if self.errors.get(self._use(err, "error")) else 0

    def dftd4_get_error(self, err, buffer, size):
        addr = self._use(err, "error")
        nbytes = size._obj.value
        self.error_buffer_sizes.append(nbytes)
        buffer.value = self.errors[addr].encode()[: nbytes - 1]

    def dftd4_delete_error(self, ref):
        addr = ref._obj.value
        self.errors.pop(addr, None)
        self._delete(ref, "error")

    # -- structure ---------------------------------------------------------
    def dftd4_new_structure(self, err, natoms, numbers, positions, charge, lattice, periodic):
        if not self._enter("dftd4_new_structure", err):
            return None
        addr = self._new("structure")
        self.structures[addr] = {
            "natoms": natoms,
            "numbers": [numbers[i] for i in range(natoms)],
            "positions": [positions[i] for i in range(3 * natoms)],
            "charge": None if charge is None else charge[0],
            "lattice": None if lattice is None else [lattice[i] for i in range(9)],
            "periodic": None if periodic is None else [bool(periodic[i]) for i in range(3)],
        }
        return addr

    def dftd4_update_structure(self, err, mol, positions, lattice):
        if not self._enter("dftd4_update_structure", err):
            return
        data = self.structures[self._use(mol, "structure")]
        data["positions"] = [positions[i] for i in range(3 * data["natoms"])]
        if lattice is not None:
            data["lattice"] = [lattice[i] for i in range(9)]

    def dftd4_delete_structure(self, ref):
        self._delete(ref, "structure")

    # -- model -------------------------------------------------------------
    def dftd4_new_d4_model(self, err, mol):
        if not self._enter("dftd4_new_d4_model", err):
            return None
        natoms = self.structures[self._use(mol, "structure")]["natoms"]
        addr = self._new("model")
        self.models[addr] = {"natoms": natoms, "custom": None}
        return addr

    def dftd4_custom_d4_model(self, err, mol, ga, gc, wf):
        if not self._enter("dftd4_custom_d4_model", err):
            return None
        natoms = self.structures[self._use(mol, "structure")]["natoms"]
        addr = self._new("model")
        self.models[addr] = {"natoms": natoms, "custom": (ga, gc, wf)}
        return addr

    def dftd4_delete_model(self, ref):
        self._delete(ref, "model")

    # -- damping parameters ------------------------------------------------
    def dftd4_new_rational_damping(self, err, s6, s8, s9, a1, a2, alp):
        if not self._enter("dftd4_new_rational_damping", err):
            return None
        addr = self._new("param")
        self.params[addr] = {"coefficients": (s6, s8, s9, a1, a2, alp)}
        return addr

    def dftd4_load_rational_damping(self, err, method, mdb):
        if not self._enter("dftd4_load_rational_damping", err):
            return None
        if method not in self.methods:
            self.errors[_addr(err)] = f"Method '{method.decode()}' not known"
            return None
        addr = self._new("param")
        self.params[addr] = {"method": method, "mdb": mdb}
        return addr

    def dftd4_delete_param(self, ref):
        self._delete(ref, "param")

    # -- evaluators --------------------------------------------------------
    def dftd4_get_properties(self, err, mol, disp, cn, charges, c6, alpha):
        if not self._enter("dftd4_get_properties", err):
            return
        data = self.structures[self._use(mol, "structure")]
        self._use(disp, "model")
        nat, z = data["natoms"], data["numbers"]
        for i in range(nat):
            cn[i] = 0.5 * (i + 1)
            charges[i] = 0.1 * i
            alpha[i] = 1.5 * z[i]
            for j in range(nat):
                c6[i * nat + j] = float(z[i] * z[j])

    def dftd4_get_dispersion(self, err, mol, disp, param, energy, gradient, sigma):
        self.dispersion_nulls.append((gradient is None, sigma is None))
        if not self._enter("dftd4_get_dispersion", err):
            return
        nat = self.structures[self._use(mol, "structure")]["natoms"]
        self._use(disp, "model")
        self._use(param, "param")
        energy[0] = -0.001 * nat
        if gradient is not None:
            for k in range(3 * nat):
                gradient[k] = 0.01 * (k + 1)
        if sigma is not None:
            for k in range(9):
                sigma[k] = 0.1 * k

    def dftd4_get_pairwise_dispersion(self, err, mol, disp, param, pair2, pair3):
        if not self._enter("dftd4_get_pairwise_dispersion", err):
            return
        nat = self.structures[self._use(mol, "structure")]["natoms"]
        self._use(disp, "model")
        self._use(param, "param")
        for i in range(nat):
            for j in range(nat):
                pair2[i * nat + j] = 0.0 if i == j else -1.0e-4
                pair3[i * nat + j] = 0.0 if i == j else 1.0e-8


@pytest.fixture
def fake_native(monkeypatch):
    from rest_dftd4 import library

    fake = FakeNative()
    monkeypatch.setattr(library, "get_library", lambda: fake)
    yield fake
    assert fake.live_count("error") == 0, "error handle leaked"


WATER_NUMBERS = [8, 1, 1]
WATER_POSITIONS = [
    [0.00000000000000, 0.00000000000000, -0.73578586109551],
    [1.44183152868459, 0.00000000000000, 0.36789293054775],
    [-1.44183152868459, 0.00000000000000, 0.36789293054775],
]


@pytest.fixture
def water():
    return list(WATER_NUMBERS), [list(r) for r in WATER_POSITIONS]
