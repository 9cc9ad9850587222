# -- IISPH Fluid Solver -- #

'''
Step orchestrator for the implicit incompressible SPH simulation.

FluidSolver owns the whole simulation context: fluid and boundary
particles, the uniform grid, the neighbor lists of the current step,
the pressure formulation, the integrator, and the particle sources
and sink. Each call to step() runs the phases in order, with every
phase finished before the next one reads its output.

Algorithm per time step:
    1. Size the grid from the current particle extent
    2. (Every mortonInterval steps) Z-order resequencing
    3. Fill the buckets and build the neighbor lists
    4. Density, normals, surface flags
    5. Advection forces (gravity, viscosity, surface tension,
       boundary friction and adhesion)
    6. Pressure solve and pressure force
    7. Integrate (Symplectic Euler)
    8. Particle sources, then the sink hook
    9. Statistics

References:
-----------
Ihmsen et al. (2014) -- Implicit Incompressible SPH
Akinci et al. (2012) -- Versatile Rigid-Fluid Coupling for Incompressible SPH
Akinci et al. (2013) -- Versatile Surface Tension and Adhesion for SPH Fluids
'''

from __future__ import annotations

import warnings
from typing import Iterable

import numpy as np

from computationalFluids.FluidSim.sph import fluidForces
from computationalFluids.FluidSim.sph.kernels import AkinciKernel, MonaghanKernel
from computationalFluids.FluidSim.sph.mortonSort import resequence
from computationalFluids.FluidSim.sph.neighborSearch import NeighborLists, NeighborSearch, UniformGrid
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.pressureSolver import createPressureSolver
from computationalFluids.FluidSim.sph.protocols import (
    ParticleSink,
    ParticleSource,
    PressureSolveReport,
    PressureSolver,
    SimulationConfig,
    SimulationState,
    StateSnapshot,
)
from computationalFluids.FluidSim.sph.sources import InertParticleSink
from computationalFluids.FluidSim.sph.timeIntegration import SymplecticEuler, TimeIntegrator


class FluidSolver:
    '''
    IISPH fluid solver with static rigid boundaries.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration
    pressureSolver : PressureSolver | None
        Pressure formulation (defaults to the one named in the configuration)
    sources : Iterable[ParticleSource]
        Particle emitters applied after each step
    sink : ParticleSink | None
        Particle removal hook (defaults to an inert sink)
    integrator : TimeIntegrator | None
        Time integration scheme (defaults to symplectic Euler)

    Raises:
    -------
    ValueError : If the configuration is invalid
    '''

    def __init__(
        self,
        config: SimulationConfig,
        pressureSolver: PressureSolver | None = None,
        sources: Iterable[ParticleSource] = (),
        sink: ParticleSink | None = None,
        integrator: TimeIntegrator | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._kernel = MonaghanKernel(config.smoothingRadius)
        self._akinciKernel = AkinciKernel(config.supportRadius)
        self._pressureSolver = pressureSolver or createPressureSolver(
            config.solver.pressureFormulation, config, self._kernel,
        )
        self._integrator = integrator or SymplecticEuler()
        self._sources: list[ParticleSource] = list(sources)
        self._sink = sink or InertParticleSink()

        self._particles: FluidParticles | None = None
        self._boundaries: BoundaryParticles | None = None
        self._grid: UniformGrid | None = None
        self._fluidNeighbors: NeighborLists | None = None
        self._boundaryNeighbors: NeighborLists | None = None
        self._lastReport: PressureSolveReport | None = None

        self._time: float = 0.0
        self._step: int = 0

    ######################################################################
    # -- Initialization -- #
    ######################################################################

    def initialize(self, particles: FluidParticles, boundaries: BoundaryParticles) -> None:
        '''
        Validate the setup, compute boundary volumes and initial density.

        Parameters:
        -----------
        particles : FluidParticles
            Initial fluid particles
        boundaries : BoundaryParticles
            Static boundary particles

        Raises:
        -------
        ValueError : If the configuration is invalid, a particle set is
            empty, or a position is not finite
        '''
        self._config.validate()

        if particles.nParticles == 0:
            raise ValueError('Cannot initialize the solver without fluid particles')
        if boundaries.nParticles == 0:
            raise ValueError('Cannot initialize the solver without boundary particles')

        self._particles = particles
        self._boundaries = boundaries
        self._time = 0.0
        self._step = 0
        self._lastReport = None

        self.computeBoundaryPsi()
        self._findNeighbors()
        fluidForces.computeDensity(
            particles, boundaries, self._fluidNeighbors, self._boundaryNeighbors, self._kernel,
        )
        particles.isSurface = np.ones(particles.nParticles, dtype=bool)

    def computeBoundaryPsi(self) -> None:
        '''
        Recompute the boundary volume weights psi.

        Needed after boundary particles are added or moved non-rigidly. The
        grid is resized to the current extent first.
        '''
        boundaries = self._requireBoundaries()
        self._rebuildGrid()

        self._grid.fill(self._requireParticles().positions, boundaries.positions)
        search = NeighborSearch(self._grid)
        boundaryLists = search.boundaryNeighborsOfBoundary(self._config.supportRadius)
        fluidForces.computeBoundaryPsi(
            boundaries, boundaryLists, self._kernel, self._config.fluid.restDensity,
        )

    ######################################################################
    # -- Main Time Step -- #
    ######################################################################

    def step(self) -> SimulationState:
        '''
        Advance the simulation by one time step.

        Returns:
        --------
        SimulationState : Statistics after the step
        '''
        particles = self._requireParticles()
        boundaries = self._requireBoundaries()
        config = self._config
        dt = config.solver.timeStep

        # 1-3. Grid, resequencing, neighbor lists
        self.prepareGrid()
        fluidNeighbors = self._fluidNeighbors
        boundaryNeighbors = self._boundaryNeighbors

        # 4. Density, normals, surface flags
        fluidForces.computeDensity(particles, boundaries, fluidNeighbors, boundaryNeighbors, self._kernel)
        fluidForces.computeNormals(particles, fluidNeighbors, self._kernel)
        fluidForces.classifySurface(particles, config.solver.surfaceThreshold)

        # 5. Advection forces
        fluidForces.computeAdvectionForces(
            particles, boundaries, fluidNeighbors, boundaryNeighbors,
            self._kernel, self._akinciKernel, config,
        )

        # 6. Pressure
        report = self._pressureSolver.solve(particles, boundaries, fluidNeighbors, boundaryNeighbors)
        self._lastReport = report
        if not report.converged:
            warnings.warn(
                f'Pressure solve stopped at {report.iterations} iterations '
                f'(mean density {report.meanCorrectedDensity:.3f} kg/m^3) at t = {self._time:.4f} s',
                RuntimeWarning,
            )

        # 7. Integrate
        self._integrator.integrate(particles, dt)
        self._time += dt
        self._step += 1

        # 8. Sources and sink; neighbor lists are stale from here on
        self.applySources()
        self._sink.apply(particles, self._time)
        self._fluidNeighbors = None
        self._boundaryNeighbors = None

        # 9. Statistics
        return self.currentState

    def prepareGrid(self) -> None:
        '''
        Size the grid, resequence when due, fill buckets, find neighbors.
        '''
        particles = self._requireParticles()
        boundaries = self._requireBoundaries()
        interval = self._config.solver.mortonInterval

        self._rebuildGrid()
        if interval > 0 and self._step % interval == 0:
            resequence(particles, self._grid)

        self._grid.fill(particles.positions, boundaries.positions)
        self._findNeighbors()

    def applySources(self) -> int:
        '''
        Append the particles emitted by every source.

        Returns:
        --------
        int : Number of particles added
        '''
        particles = self._requireParticles()
        added = 0
        for source in self._sources:
            batch = source.apply(self._time)
            if len(batch) == 0:
                continue
            particles.append(batch.positions, batch.velocities, self._config.fluid.mass)
            added += len(batch)
        return added

    def _rebuildGrid(self) -> None:
        self._grid = UniformGrid.fromPoints(
            [self._requireParticles().positions, self._requireBoundaries().positions],
            self._config.smoothingRadius,
        )

    def _findNeighbors(self) -> None:
        search = NeighborSearch(self._grid)
        self._fluidNeighbors, self._boundaryNeighbors = search.findAll(self._config.supportRadius)

    ######################################################################
    # -- Scene Manipulation -- #
    ######################################################################

    def addSource(self, source: ParticleSource) -> None:
        '''Register a particle source applied after each step.'''
        self._sources.append(source)

    def translateBoundaries(self, offset: np.ndarray) -> None:
        '''Rigidly translate all boundary particles (psi stays valid).'''
        self._requireBoundaries().translate(offset)
        self._fluidNeighbors = None
        self._boundaryNeighbors = None

    def translateParticles(self, offset: np.ndarray) -> None:
        '''Translate all fluid particles.'''
        particles = self._requireParticles()
        particles.positions = particles.positions + np.asarray(offset, dtype=float)
        self._fluidNeighbors = None
        self._boundaryNeighbors = None

    ######################################################################
    # -- State Access -- #
    ######################################################################

    def snapshot(self) -> StateSnapshot:
        '''Copy of the exported particle fields.'''
        particles = self._requireParticles()
        return StateSnapshot(
            time=self._time,
            positions=particles.positions.copy(),
            velocities=particles.velocities.copy(),
            densities=particles.densities.copy(),
            masses=particles.masses.copy(),
        )

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def time(self) -> float:
        '''Current simulation time [s].'''
        return self._time

    @property
    def stepCount(self) -> int:
        '''Number of completed steps.'''
        return self._step

    @property
    def particles(self) -> FluidParticles:
        return self._requireParticles()

    @property
    def boundaries(self) -> BoundaryParticles:
        return self._requireBoundaries()

    @property
    def neighbors(self) -> tuple[NeighborLists, NeighborLists] | None:
        '''(fluidNeighbors, boundaryNeighbors) of the last rebuild, None once stale.'''
        if self._fluidNeighbors is None:
            return None
        return self._fluidNeighbors, self._boundaryNeighbors

    @property
    def lastSolveReport(self) -> PressureSolveReport | None:
        '''Outcome of the last pressure solve.'''
        return self._lastReport

    @property
    def currentState(self) -> SimulationState:
        '''
        Summary statistics of the current state.

        Particles appended by a source since the last density
        evaluation are left out of the density statistics.

        Returns:
        --------
        SimulationState : Current statistics
        '''
        particles = self._requireParticles()
        restDensity = self._config.fluid.restDensity

        evaluated = particles.densities > 0.0
        meanDensity = float(np.mean(particles.densities[evaluated])) if np.any(evaluated) else 0.0
        report = self._lastReport

        return SimulationState(
            time=self._time,
            step=self._step,
            dt=self._config.solver.timeStep,
            nParticles=particles.nParticles,
            meanDensity=meanDensity,
            realVolume=particles.realVolume(),
            densityFluctuation=meanDensity - restDensity,
            maxVelocity=particles.maxSpeed(),
            kineticEnergy=particles.kineticEnergy(),
            pressureIterations=report.iterations if report is not None else 0,
            solverConverged=report.converged if report is not None else True,
        )

    def _requireParticles(self) -> FluidParticles:
        if self._particles is None:
            raise ValueError('Solver not initialized, call initialize() first')
        return self._particles

    def _requireBoundaries(self) -> BoundaryParticles:
        if self._boundaries is None:
            raise ValueError('Solver not initialized, call initialize() first')
        return self._boundaries
