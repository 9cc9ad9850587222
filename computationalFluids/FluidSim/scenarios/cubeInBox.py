# -- Fluid Cube in a Box Scenario -- #

'''
A cube of fluid released inside a closed box.

The scenario creates:
1. Fluid particles filling a cube on a regular lattice
2. Boundary particles on the six faces of a box several cube widths wide
3. A SimulationConfig whose particle mass and smoothing radius derive
   from the particle count and the cube volume

Coordinate convention: y is vertical, gravity along -y.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from computationalFluids.FluidSim import constants as const
from computationalFluids.FluidSim.scenarios.sampling import sampleBox, sampleBoxSurface
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.protocols import (
    FluidParameters,
    PressureFormulation,
    SimulationConfig,
    SolverParameters,
)


######################################################################
# -- Cube in Box Configuration -- #
######################################################################

@dataclass
class CubeInBoxConfig:
    '''
    Configuration for the cube in a box scenario.

    Parameters:
    -----------
    particleCount : int
        Wished number of fluid particles (rounded to a cube number)
    volume : float
        Fluid (cube) volume [m^3]
    boxScale : float
        Box edge length as a multiple of the cube edge
    elevation : float
        Cube height above the floor as a fraction of the free height
        (0 rests on the floor, 0.5 is centred)
    boundaryLayers : int
        Number of boundary particle layers
    timeStep : float
        Fixed time step [s]
    endTime : float
        Simulation end time [s]
    outputInterval : float
        Time between exported states [s]
    pressureFormulation : PressureFormulation
        Pressure formulation name
    gravity : tuple[float, float, float]
        Gravity vector [m/s^2]
    '''

    particleCount: int = 1000
    volume: float = 1.0
    boxScale: float = 4.0
    elevation: float = 0.5
    boundaryLayers: int = 1
    timeStep: float = const.timeStep
    endTime: float = 1.0
    outputInterval: float = 0.016
    pressureFormulation: PressureFormulation = 'implicitIncompressible'
    gravity: tuple[float, float, float] = (0.0, -const.gravity, 0.0)

    @classmethod
    def small(cls) -> CubeInBoxConfig:
        '''
        Small cube for quick testing.

        343 fluid particles, runs in seconds.
        '''
        return cls(particleCount=343, volume=0.343, boxScale=3.0, endTime=0.5)

    @classmethod
    def standard(cls) -> CubeInBoxConfig:
        '''
        Standard cube in a box.

        1000 fluid particles dropped from the middle of a 4x box.
        '''
        return cls()

    @classmethod
    def dropOnFloor(cls) -> CubeInBoxConfig:
        '''1000 fluid particles resting on the floor of a 4x box.'''
        return cls(elevation=0.0, timeStep=0.002)

    @classmethod
    def zeroGravity(cls) -> CubeInBoxConfig:
        '''
        Weightless cube floating in the middle of a 4x box.

        Surface tension alone rounds the cube off.
        '''
        return cls(gravity=(0.0, 0.0, 0.0), endTime=1.0)


######################################################################
# -- Scenario Creation -- #
######################################################################

def createCubeInBox(
    scenario: CubeInBoxConfig,
) -> tuple[SimulationConfig, FluidParticles, BoundaryParticles]:
    '''
    Create a cube in a box simulation from configuration.

    The cube edge is volume^(1/3) with round(particleCount^(1/3))
    particles per edge. The box is centred on the cube horizontally,
    with its floor half a spacing below the lowest possible cube
    position.

    Parameters:
    -----------
    scenario : CubeInBoxConfig
        Scenario configuration

    Returns:
    --------
    tuple[SimulationConfig, FluidParticles, BoundaryParticles] :
        Ready-to-run configuration, fluid particles, and boundary particles
    '''
    if scenario.particleCount <= 0:
        raise ValueError(f'Particle count must be positive, got {scenario.particleCount}')
    if scenario.boxScale < 1.0:
        raise ValueError(f'Box scale must be >= 1, got {scenario.boxScale}')

    perEdge = max(int(round(scenario.particleCount ** (1.0 / 3.0))), 1)
    nParticles = perEdge ** 3
    side = scenario.volume ** (1.0 / 3.0)
    s = side / perEdge

    ######################################################################
    # Build simulation config
    ######################################################################
    fluid = FluidParameters(particleCount=nParticles, volume=scenario.volume)
    simConfig = SimulationConfig.fromFluid(
        fluid,
        solver=SolverParameters(
            timeStep=scenario.timeStep,
            pressureFormulation=scenario.pressureFormulation,
        ),
        gravity=np.array(scenario.gravity, dtype=float),
        endTime=scenario.endTime,
        outputInterval=scenario.outputInterval,
    )

    ######################################################################
    # Fluid cube
    ######################################################################
    boxEdge = scenario.boxScale * side
    freeHeight = boxEdge - side
    cubeOffset = np.array([0.0, scenario.elevation * freeHeight, 0.0])
    fluidPositions = sampleBox(cubeOffset, np.full(3, side), s)
    particles = FluidParticles.fromPositions(fluidPositions, fluid.mass)

    ######################################################################
    # Boundary box (closed), faces half a spacing outside the fluid region
    ######################################################################
    margin = 0.5 * (boxEdge - side)
    boxOffset = np.array([-margin, 0.0, -margin]) - 0.5 * s
    boxScale = np.full(3, boxEdge + s)
    boundaryPositions = sampleBoxSurface(boxOffset, boxScale, s, scenario.boundaryLayers)
    boundaries = BoundaryParticles(positions=boundaryPositions)

    return (simConfig, particles, boundaries)
