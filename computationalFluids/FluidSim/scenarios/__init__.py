# -- Simulation Scenarios Package -- #

'''
Pre-configured simulation scenarios and particle samplers.

Each scenario provides initial conditions (particle layout,
boundary geometry) and configuration for a specific problem.
'''

from computationalFluids.FluidSim.scenarios.sampling import (
    sampleBox,
    sampleSphere,
    sampleDisk,
    sampleBoxSurface,
)
from computationalFluids.FluidSim.scenarios.cubeInBox import CubeInBoxConfig, createCubeInBox
from computationalFluids.FluidSim.scenarios.damBreak import DamBreakConfig, createDamBreak
