# -- SPH Engine Package -- #

'''
Core Smoothed Particle Hydrodynamics (SPH) engine.

Provides kernel functions, particle storage, grid neighbor search,
Morton resequencing, force evaluation, the pressure solvers, time
integration, and the IISPH step orchestrator.
'''

from computationalFluids.FluidSim.sph.protocols import SimulationConfig, SimulationState
from computationalFluids.FluidSim.sph.kernels import MonaghanKernel, AkinciKernel, BoundaryKernel
from computationalFluids.FluidSim.sph.particles import FluidParticles, BoundaryParticles
from computationalFluids.FluidSim.sph.iisphSolver import FluidSolver
