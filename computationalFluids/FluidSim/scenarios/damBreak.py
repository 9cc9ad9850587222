# -- Dam Break Scenario -- #

'''
A column of fluid collapsing from one corner of a closed tank.

The fluid block rests on the floor against the x = 0 wall and spans the
full tank depth, so the surge runs along +x and hits the far wall.

Coordinate convention: y is vertical, gravity along -y.

References:
-----------
Koshizuka & Oka (1996) -- Moving-particle semi-implicit method for
fragmentation of incompressible fluid
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from computationalFluids.FluidSim.scenarios.sampling import sampleBox, sampleBoxSurface
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.protocols import (
    FluidParameters,
    PressureFormulation,
    SimulationConfig,
    SolverParameters,
)


@dataclass
class DamBreakConfig:
    '''
    Configuration for the dam break scenario.

    Parameters:
    -----------
    fluidSize : tuple[float, float, float]
        Width, height, depth of the fluid column [m]
    tankSize : tuple[float, float, float]
        Width, height, depth of the tank interior [m]
    spacing : float
        Initial particle spacing [m]
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
    '''

    fluidSize: tuple[float, float, float] = (0.5, 1.0, 0.25)
    tankSize: tuple[float, float, float] = (1.5, 2.0, 0.25)
    spacing: float = 0.05
    boundaryLayers: int = 1
    timeStep: float = 0.002
    endTime: float = 1.5
    outputInterval: float = 0.016
    pressureFormulation: PressureFormulation = 'implicitIncompressible'

    @classmethod
    def standard(cls) -> DamBreakConfig:
        '''
        Column twice as high as wide in a tank three columns wide.

        1000 fluid particles.
        '''
        return cls()

    @classmethod
    def tall(cls) -> DamBreakConfig:
        '''2 x 4 x 1 column in a 6 x 8 x 1 tank, 8000 particles.'''
        return cls(
            fluidSize=(2.0, 4.0, 1.0),
            tankSize=(6.0, 8.0, 1.0),
            spacing=0.1,
            endTime=6.0,
        )


def createDamBreak(
    scenario: DamBreakConfig,
) -> tuple[SimulationConfig, FluidParticles, BoundaryParticles]:
    '''
    Create a dam break simulation from configuration.

    Parameters:
    -----------
    scenario : DamBreakConfig
        Scenario configuration

    Returns:
    --------
    tuple[SimulationConfig, FluidParticles, BoundaryParticles] :
        Ready-to-run configuration, fluid particles, and boundary particles
    '''
    fluidSize = np.asarray(scenario.fluidSize, dtype=float)
    tankSize = np.asarray(scenario.tankSize, dtype=float)
    s = scenario.spacing

    if np.any(fluidSize <= 0.0):
        raise ValueError(f'Fluid size must be positive, got {scenario.fluidSize}')
    if np.any(fluidSize > tankSize):
        raise ValueError(
            f'Fluid column {scenario.fluidSize} does not fit in the tank {scenario.tankSize}'
        )

    fluidPositions = sampleBox(np.zeros(3), fluidSize, s)
    nParticles = fluidPositions.shape[0]
    if nParticles == 0:
        raise ValueError(f'Spacing {s} is too coarse for the fluid column {scenario.fluidSize}')

    # Mass and smoothing radius follow the sampled lattice
    fluid = FluidParameters(particleCount=nParticles, volume=float(nParticles * s ** 3))
    simConfig = SimulationConfig.fromFluid(
        fluid,
        solver=SolverParameters(
            timeStep=scenario.timeStep,
            pressureFormulation=scenario.pressureFormulation,
        ),
        endTime=scenario.endTime,
        outputInterval=scenario.outputInterval,
    )
    particles = FluidParticles.fromPositions(fluidPositions, fluid.mass)

    # Tank faces half a spacing outside the interior
    boundaryPositions = sampleBoxSurface(
        np.full(3, -0.5 * s), tankSize + s, s, scenario.boundaryLayers,
    )
    boundaries = BoundaryParticles(positions=boundaryPositions)

    return (simConfig, particles, boundaries)
