# -- Configuration Tests -- #

from __future__ import annotations

import json
import math

import numpy as np
import pytest

from computationalFluids.FluidSim import constants as const
from computationalFluids.FluidSim.sph.protocols import (
    FluidParameters,
    SimulationConfig,
    SolverParameters,
)


def testDerivedFluidParameters():
    fluid = FluidParameters(particleCount=1000, volume=1.0)
    expectedH = 0.5 * (3.0 * const.particlePerCell / (4.0 * math.pi * 1000)) ** (1.0 / 3.0)

    assert fluid.mass == pytest.approx(1.0)
    assert fluid.smoothingRadius == pytest.approx(expectedH)
    assert fluid.soundSpeed == pytest.approx(math.sqrt(2.0 * 9.81 * 0.1) / 0.1)


def testOverridesReplaceDerivedValues():
    fluid = FluidParameters(smoothingRadiusOverride=0.2, soundSpeedOverride=30.0)
    assert fluid.smoothingRadius == 0.2
    assert fluid.soundSpeed == 30.0


def testFromFluidDerivesBoundaryRadius(config):
    assert config.boundary.smoothingRadius == pytest.approx(
        const.boundarySmoothingRatio * config.smoothingRadius
    )
    assert config.supportRadius == pytest.approx(2.0 * config.smoothingRadius)
    assert np.allclose(config.gravity, [0.0, -9.81, 0.0])
    config.validate()


@pytest.mark.parametrize('mutate', [
    lambda c: setattr(c.fluid, 'particleCount', 0),
    lambda c: setattr(c.fluid, 'volume', -1.0),
    lambda c: setattr(c.fluid, 'restDensity', 0.0),
    lambda c: setattr(c.boundary, 'smoothingRadius', 0.0),
    lambda c: setattr(c.boundary, 'smoothingRadius', 10.0),
    lambda c: setattr(c.solver, 'timeStep', 0.0),
    lambda c: setattr(c.solver, 'minIterations', 0),
    lambda c: setattr(c.solver, 'maxIterations', 1),
    lambda c: setattr(c.solver, 'relaxation', 1.5),
    lambda c: setattr(c.solver, 'mortonInterval', -1),
    lambda c: setattr(c.solver, 'pressureFormulation', 'pcisph'),
    lambda c: setattr(c, 'gravity', np.zeros(2)),
])
def testValidateRejects(config, mutate):
    config.solver.minIterations = 2
    mutate(config)
    with pytest.raises(ValueError):
        config.validate()


def testFromJsonReadsSections(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'fluid': {'particleCount': 512, 'volume': 0.512, 'cohesion': 0.0},
        'boundary': {'friction': 0.01},
        'solver': {'timeStep': 0.002, 'maxIterations': 50, 'pressureFormulation': 'weaklyCompressible'},
        'simulation': {'gravity': [0.0, 0.0, -9.81], 'endTime': 2.0},
    }))

    config = SimulationConfig.fromJson(str(path))

    assert config.fluid.particleCount == 512
    assert config.fluid.mass == pytest.approx(1.0)
    assert config.fluid.cohesion == 0.0
    assert config.boundary.friction == 0.01
    assert config.boundary.adhesion == const.boundaryAdhesion
    assert config.boundary.smoothingRadius == pytest.approx(
        const.boundarySmoothingRatio * config.smoothingRadius
    )
    assert config.solver.timeStep == 0.002
    assert config.solver.maxIterations == 50
    assert config.solver.minIterations == const.minIterations
    assert config.solver.pressureFormulation == 'weaklyCompressible'
    assert np.allclose(config.gravity, [0.0, 0.0, -9.81])
    assert config.endTime == 2.0
    assert config.outputInterval == 0.016
    config.validate()


def testFromJsonDefaults(tmp_path):
    path = tmp_path / 'empty.json'
    path.write_text('{}')
    config = SimulationConfig.fromJson(str(path))

    assert config.solver == SolverParameters()
    assert config.fluid.particleCount == 1000
    config.validate()
