import os

import pytest

from rest_dftd4 import fatal
from rest_dftd4.structure import Structure


@pytest.fixture
def aborts(monkeypatch):
    calls = []
    monkeypatch.setattr(os, "abort", lambda: calls.append(True))
    return calls


def test_success_passes_through(fake_native, water, aborts):
    mol = fatal.new_structure(3, *water)
    model = fatal.new_model(mol)
    param = fatal.load_rational_damping("TPSS", True)
    res = fatal.get_dispersion(mol, model, param, True, False)
    assert isinstance(mol, Structure)
    assert res.gradient.shape == (3, 3)
    assert aborts == []
    for h in (param, model, mol):
        h.close()


def test_validation_failure_aborts(fake_native, aborts, caplog):
    with caplog.at_level("CRITICAL", logger=fatal.__name__):
        assert fatal.new_structure(2, [1], [0.0] * 6) is None
    assert aborts == [True]
    assert "new_structure" in caplog.records[-1].getMessage()
    assert fake_native.calls == []


def test_native_failure_aborts(fake_native, water, aborts):
    fake_native.fail["dftd4_get_properties"] = "broken"
    mol = fatal.new_structure(3, *water)
    model = fatal.custom_model(mol, 3.0, 2.0, 6.0)
    assert fatal.get_properties(mol, model) is None
    assert aborts == [True]
    fatal.update_structure(mol, [0.0])
    assert aborts == [True, True]
    model.close()
    mol.close()


def test_unwrap_keeps_name():
    def compute():
        return 1

    wrapped = fatal.unwrap(compute)
    assert wrapped.__name__ == "compute"
    assert wrapped() == 1


def test_rational_damping_variant(fake_native, aborts):
    param = fatal.new_rational_damping(1.0, 1.0, 1.0, 0.4, 4.0, 16.0)
    assert fake_native.params[param.ptr.value]["coefficients"][3] == 0.4
    param.close()
