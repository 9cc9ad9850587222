# -- SPH Simulation Protocols -- #

'''
Configuration dataclasses, result dataclasses, and protocols for the
IISPH fluid simulation.

Defines the parameter groups (fluid, boundary, solver), the combined
SimulationConfig with its validation rules, the per-step
SimulationState statistics, the exported StateSnapshot, and the
protocols for pressure solvers, particle sources and particle sinks.
'''

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Literal, Protocol, TYPE_CHECKING

import numpy as np

from computationalFluids.FluidSim import constants as const

if TYPE_CHECKING:
    from computationalFluids.FluidSim.sph.particles import FluidParticles, BoundaryParticles
    from computationalFluids.FluidSim.sph.neighborSearch import NeighborLists


PressureFormulation = Literal['weaklyCompressible', 'implicitIncompressible']

pressureFormulations: tuple[str, ...] = ('weaklyCompressible', 'implicitIncompressible')


######################################################################
# -- Parameter Groups -- #
######################################################################

@dataclass
class FluidParameters:
    '''
    Physical parameters of the fluid.

    The particle mass and the smoothing radius are derived from the
    wished particle count and the fluid volume, so that one smoothing
    sphere holds about `particlePerCell` particles.

    Parameters:
    -----------
    particleCount : int
        Wished number of particles for `volume` [-]
    volume : float
        Fluid volume represented by `particleCount` particles [m^3]
    restDensity : float
        Rest density rho_0 [kg/m^3]
    viscosity : float
        Artificial viscosity coefficient alpha [-]
    cohesion : float
        Surface tension (cohesion) coefficient gamma [-]
    smoothingRadiusOverride : float | None
        Explicit smoothing radius h [m], replaces the derived one
    soundSpeedOverride : float | None
        Explicit numerical speed of sound [m/s]
    '''

    particleCount: int = 1000
    volume: float = 1.0
    restDensity: float = const.restDensity
    viscosity: float = const.viscosity
    cohesion: float = const.cohesion
    smoothingRadiusOverride: float | None = None
    soundSpeedOverride: float | None = None

    @property
    def mass(self) -> float:
        '''Particle mass m = rho_0 * V / N [kg].'''
        return self.restDensity * self.volume / self.particleCount

    @property
    def smoothingRadius(self) -> float:
        '''Smoothing radius h [m]. Kernel support is 2h.'''
        if self.smoothingRadiusOverride is not None:
            return self.smoothingRadiusOverride
        return 0.5 * (
            (3.0 * self.volume * const.particlePerCell)
            / (4.0 * math.pi * self.particleCount)
        ) ** (1.0 / 3.0)

    @property
    def soundSpeed(self) -> float:
        '''Numerical speed of sound c_s [m/s].'''
        if self.soundSpeedOverride is not None:
            return self.soundSpeedOverride
        freeFallVelocity = math.sqrt(2.0 * const.gravity * const.referenceHeight)
        return freeFallVelocity / math.sqrt(const.maxCompression)


@dataclass
class BoundaryParameters:
    '''
    Parameters of the static boundary particles.

    Parameters:
    -----------
    smoothingRadius : float
        Boundary smoothing radius [m], must not exceed the fluid one
    friction : float
        Boundary friction coefficient sigma [-]
    adhesion : float
        Boundary adhesion coefficient beta [-]
    '''

    smoothingRadius: float
    friction: float = const.boundaryFriction
    adhesion: float = const.boundaryAdhesion


@dataclass
class SolverParameters:
    '''
    Time stepping and pressure solver parameters.

    Parameters:
    -----------
    timeStep : float
        Fixed time step dt [s]
    minIterations : int
        Iteration floor of the pressure solve
    maxIterations : int
        Safety cap of the pressure solve
    maxDensityError : float
        Tolerated mean density error [kg/m^3]
    relaxation : float
        Relaxation factor omega of the Jacobi update, in (0, 1]
    surfaceThreshold : float
        Squared normal length above which a particle is a surface particle
    mortonInterval : int
        Steps between Z-order resequencing (0 disables it)
    pressureFormulation : PressureFormulation
        'implicitIncompressible' (IISPH) or 'weaklyCompressible' (Tait EOS)
    '''

    timeStep: float = const.timeStep
    minIterations: int = const.minIterations
    maxIterations: int = const.maxIterations
    maxDensityError: float = const.maxDensityError
    relaxation: float = const.relaxation
    surfaceThreshold: float = const.surfaceThreshold
    mortonInterval: int = const.mortonInterval
    pressureFormulation: PressureFormulation = 'implicitIncompressible'


######################################################################
# -- Simulation Configuration -- #
######################################################################

@dataclass
class SimulationConfig:
    '''
    Complete configuration of a simulation.

    Parameters:
    -----------
    fluid : FluidParameters
        Fluid parameters
    boundary : BoundaryParameters
        Boundary parameters
    solver : SolverParameters
        Solver parameters
    gravity : np.ndarray
        Gravity vector [m/s^2], shape (3,)
    endTime : float
        Simulation end time used by the driver [s]
    outputInterval : float
        Time between exported states [s]
    '''

    fluid: FluidParameters
    boundary: BoundaryParameters
    solver: SolverParameters = field(default_factory=SolverParameters)
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, -const.gravity, 0.0]))
    endTime: float = 1.0
    outputInterval: float = 0.016

    @classmethod
    def fromFluid(cls, fluid: FluidParameters, **kwargs) -> SimulationConfig:
        '''
        Build a configuration whose boundary parameters derive from
        the fluid smoothing radius.

        Parameters:
        -----------
        fluid : FluidParameters
            Fluid parameters
        **kwargs
            Remaining SimulationConfig fields

        Returns:
        --------
        SimulationConfig : Configuration with default boundary parameters
        '''
        boundary = BoundaryParameters(
            smoothingRadius=const.boundarySmoothingRatio * fluid.smoothingRadius,
        )
        return cls(fluid=fluid, boundary=boundary, **kwargs)

    @property
    def smoothingRadius(self) -> float:
        '''Fluid smoothing radius h [m].'''
        return self.fluid.smoothingRadius

    @property
    def supportRadius(self) -> float:
        '''Kernel support and neighbor search radius 2h [m].'''
        return 2.0 * self.fluid.smoothingRadius

    def validate(self) -> None:
        '''
        Check the configuration before the simulation starts.

        Raises:
        -------
        ValueError : If any parameter is out of its valid range
        '''
        fluid = self.fluid
        solver = self.solver

        if fluid.particleCount <= 0:
            raise ValueError(f'Particle count must be positive, got {fluid.particleCount}')
        if fluid.volume <= 0.0:
            raise ValueError(f'Fluid volume must be positive, got {fluid.volume}')
        if fluid.restDensity <= 0.0:
            raise ValueError(f'Rest density must be positive, got {fluid.restDensity}')
        if fluid.smoothingRadius <= 0.0:
            raise ValueError(f'Smoothing radius must be positive, got {fluid.smoothingRadius}')
        if fluid.soundSpeed <= 0.0:
            raise ValueError(f'Speed of sound must be positive, got {fluid.soundSpeed}')

        # The neighbor radius 2h is shared by both populations
        if self.boundary.smoothingRadius <= 0.0:
            raise ValueError(
                f'Boundary smoothing radius must be positive, got {self.boundary.smoothingRadius}'
            )
        if self.boundary.smoothingRadius > fluid.smoothingRadius:
            raise ValueError(
                f'Boundary smoothing radius ({self.boundary.smoothingRadius:.6g}) exceeds '
                f'fluid smoothing radius ({fluid.smoothingRadius:.6g})'
            )

        if solver.timeStep <= 0.0:
            raise ValueError(f'Time step must be positive, got {solver.timeStep}')
        if solver.minIterations < 1:
            raise ValueError(f'minIterations must be >= 1, got {solver.minIterations}')
        if solver.maxIterations < solver.minIterations:
            raise ValueError(
                f'maxIterations ({solver.maxIterations}) is below minIterations ({solver.minIterations})'
            )
        if solver.maxDensityError < 0.0:
            raise ValueError(f'maxDensityError must be >= 0, got {solver.maxDensityError}')
        if not 0.0 < solver.relaxation <= 1.0:
            raise ValueError(f'Relaxation must be in (0, 1], got {solver.relaxation}')
        if solver.mortonInterval < 0:
            raise ValueError(f'mortonInterval must be >= 0, got {solver.mortonInterval}')
        if solver.pressureFormulation not in pressureFormulations:
            raise ValueError(f'Unknown pressure formulation: {solver.pressureFormulation}')

        gravity = np.asarray(self.gravity, dtype=float)
        if gravity.shape != (3,):
            raise ValueError(f'Gravity must be a 3-vector, got shape {gravity.shape}')

    @classmethod
    def fromJson(cls, configPath: str) -> SimulationConfig:
        '''
        Load configuration from a JSON file.

        Reads the 'fluid', 'boundary', 'solver' and 'simulation'
        sections. Missing keys fall back to the defaults.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SimulationConfig : Loaded configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        fluidSection = data.get('fluid', {})
        boundarySection = data.get('boundary', {})
        solverSection = data.get('solver', {})
        simSection = data.get('simulation', {})

        fluid = FluidParameters(
            particleCount=fluidSection.get('particleCount', 1000),
            volume=fluidSection.get('volume', 1.0),
            restDensity=fluidSection.get('restDensity', const.restDensity),
            viscosity=fluidSection.get('viscosity', const.viscosity),
            cohesion=fluidSection.get('cohesion', const.cohesion),
            smoothingRadiusOverride=fluidSection.get('smoothingRadius'),
            soundSpeedOverride=fluidSection.get('soundSpeed'),
        )

        boundary = BoundaryParameters(
            smoothingRadius=boundarySection.get(
                'smoothingRadius', const.boundarySmoothingRatio * fluid.smoothingRadius
            ),
            friction=boundarySection.get('friction', const.boundaryFriction),
            adhesion=boundarySection.get('adhesion', const.boundaryAdhesion),
        )

        solver = SolverParameters(
            timeStep=solverSection.get('timeStep', const.timeStep),
            minIterations=solverSection.get('minIterations', const.minIterations),
            maxIterations=solverSection.get('maxIterations', const.maxIterations),
            maxDensityError=solverSection.get('maxDensityError', const.maxDensityError),
            relaxation=solverSection.get('relaxation', const.relaxation),
            surfaceThreshold=solverSection.get('surfaceThreshold', const.surfaceThreshold),
            mortonInterval=solverSection.get('mortonInterval', const.mortonInterval),
            pressureFormulation=solverSection.get('pressureFormulation', 'implicitIncompressible'),
        )

        gravityVec = np.array(simSection.get('gravity', [0.0, -const.gravity, 0.0]), dtype=float)

        return cls(
            fluid=fluid,
            boundary=boundary,
            solver=solver,
            gravity=gravityVec,
            endTime=simSection.get('endTime', 1.0),
            outputInterval=simSection.get('outputInterval', 0.016),
        )


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Summary statistics at the end of a time step.

    Parameters:
    -----------
    time : float
        Current simulation time [s]
    step : int
        Number of completed steps
    dt : float
        Time step size [s]
    nParticles : int
        Number of fluid particles
    meanDensity : float
        Mean fluid density [kg/m^3]
    realVolume : float
        Fluid volume sum_i m_i / rho_i [m^3]
    densityFluctuation : float
        meanDensity - rho_0 [kg/m^3]
    maxVelocity : float
        Maximum fluid speed [m/s]
    kineticEnergy : float
        Total kinetic energy of the fluid [J]
    pressureIterations : int
        Pressure iterations run during the step
    solverConverged : bool
        False when the pressure solve stopped at its iteration cap
    '''

    time: float
    step: int
    dt: float
    nParticles: int
    meanDensity: float
    realVolume: float
    densityFluctuation: float
    maxVelocity: float
    kineticEnergy: float
    pressureIterations: int = 0
    solverConverged: bool = True


@dataclass
class StateSnapshot:
    '''
    Copy of the exported particle fields.

    Parameters:
    -----------
    time : float
        Simulation time of the snapshot [s]
    positions : np.ndarray
        Shape (N, 3) [m]
    velocities : np.ndarray
        Shape (N, 3) [m/s]
    densities : np.ndarray
        Shape (N,) [kg/m^3]
    masses : np.ndarray
        Shape (N,) [kg]
    '''

    time: float
    positions: np.ndarray
    velocities: np.ndarray
    densities: np.ndarray
    masses: np.ndarray


@dataclass
class PressureSolveReport:
    '''
    Outcome of one pressure solve.

    Parameters:
    -----------
    iterations : int
        Number of Jacobi passes run
    meanCorrectedDensity : float
        Population mean of the corrected density after the last pass [kg/m^3]
    converged : bool
        True when the density criterion was met before the iteration cap
    '''

    iterations: int
    meanCorrectedDensity: float
    converged: bool


@dataclass
class ParticleBatch:
    '''
    New fluid particles emitted by a source.

    Parameters:
    -----------
    positions : np.ndarray
        Shape (K, 3) [m]
    velocities : np.ndarray
        Shape (K, 3) [m/s]
    '''

    positions: np.ndarray
    velocities: np.ndarray

    def __len__(self) -> int:
        return self.positions.shape[0]

    @classmethod
    def empty(cls) -> ParticleBatch:
        '''Batch holding no particle.'''
        return cls(positions=np.zeros((0, 3)), velocities=np.zeros((0, 3)))


######################################################################
# -- Protocols -- #
######################################################################

class PressureSolver(Protocol):
    '''Protocol for pressure formulations (IISPH, WCSPH).'''

    def solve(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
    ) -> PressureSolveReport:
        '''Compute particles.pressures and particles.pressureForces.'''
        ...


class ParticleSource(Protocol):
    '''Protocol for particle emitters invoked once per step.'''

    def apply(self, currentTime: float) -> ParticleBatch:
        '''Return the particles to append for this step.'''
        ...


class ParticleSink(Protocol):
    '''Protocol for particle removal hooks invoked once per step.'''

    def apply(self, particles: FluidParticles, currentTime: float) -> None:
        '''Remove particles in place (with compaction) before the next rebuild.'''
        ...
