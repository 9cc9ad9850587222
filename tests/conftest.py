# -- Shared Test Fixtures -- #

'''
Fixtures shared by the FluidSim tests.
'''

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.FluidSim.sph.protocols import FluidParameters, SimulationConfig


@pytest.fixture
def config() -> SimulationConfig:
    '''Default configuration: 1000 particles per cubic metre, m = 1 kg.'''
    return SimulationConfig.fromFluid(FluidParameters(particleCount=1000, volume=1.0))


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
