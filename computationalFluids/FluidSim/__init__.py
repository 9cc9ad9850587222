# -- FluidSim Package -- #

'''
Fluid simulation module using Implicit Incompressible Smoothed
Particle Hydrodynamics (IISPH).

Free-surface liquids with surface tension, interacting with static
rigid boundaries sampled as particles.
'''

__version__ = '0.1.0'

from computationalFluids.FluidSim.runner import FluidSimRunner
from computationalFluids.FluidSim.scenarios.cubeInBox import CubeInBoxConfig
from computationalFluids.FluidSim.export.stateExporter import StateExporter
