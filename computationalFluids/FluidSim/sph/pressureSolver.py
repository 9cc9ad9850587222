# -- Pressure Solvers -- #

'''
Pressure formulations for the fluid step.

ImplicitIncompressiblePressure solves the IISPH pressure Poisson
equation with a relaxed Jacobi iteration:

    PREDICT -> COEFFICIENTS -> ITERATE (>= minIterations) -> CONVERGED | CAPPED

Every Jacobi pass reads only the previous pressure iterate, so all
particles update from the same committed state.

WeaklyCompressiblePressure evaluates the Tait equation of state from
the current density, without iteration.

Both write particles.pressures and particles.pressureForces, and both
predict particles.advectionVelocities for the integrator.

References:
-----------
Ihmsen et al. (2014) -- Implicit Incompressible SPH
Becker & Teschner (2007) -- Weakly compressible SPH for free surface flows
Monaghan (2005) -- Smoothed particle hydrodynamics
'''

from __future__ import annotations

import numpy as np

from computationalFluids.FluidSim import constants as const
from computationalFluids.FluidSim.sph.kernels import BoundaryKernel, MonaghanKernel, SphKernel
from computationalFluids.FluidSim.sph.neighborSearch import NeighborLists
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.protocols import (
    PressureSolveReport,
    PressureSolver,
    SimulationConfig,
    pressureFormulations,
)


# |aii| at or below this leaves the particle at zero pressure
_aiiEpsilon: float = float(np.finfo(float).eps)


######################################################################
# -- Shared Phases -- #
######################################################################

def predictVelocity(particles: FluidParticles, dt: float) -> None:
    '''v_adv = v + dt * f_adv / m'''
    particles.advectionVelocities = (
        particles.velocities + dt * particles.advectionForces / particles.masses[:, np.newaxis]
    )


def pairwisePressureForces(
    particles: FluidParticles,
    fluidNeighbors: NeighborLists,
    kernel: SphKernel,
) -> np.ndarray:
    '''
    Unsummed symmetric pressure force of every fluid pair.

    f_ij = -m_i * m_j * (p_i / rho_i^2 + p_j / rho_j^2) * grad W(x_ij)

    so that f_ij = -f_ji.

    Returns:
    --------
    np.ndarray : Pair forces [N], shape (P, 3)
    '''
    pairI = fluidNeighbors.pairI
    pairJ = fluidNeighbors.pairJ

    pressureTerm = particles.pressures / particles.densities ** 2
    coefficient = (
        -particles.masses[pairI] * particles.masses[pairJ]
        * (pressureTerm[pairI] + pressureTerm[pairJ])
    )
    gradients = kernel.gradientBatch(fluidNeighbors.separations, fluidNeighbors.distances)
    return coefficient[:, np.newaxis] * gradients


def computePressureForce(
    particles: FluidParticles,
    boundaries: BoundaryParticles,
    fluidNeighbors: NeighborLists,
    boundaryNeighbors: NeighborLists,
    kernel: SphKernel,
) -> None:
    '''
    Symmetric pressure force from fluid and boundary neighbors.

    f_i = -sum_f m_i m_j (p_i / rho_i^2 + p_j / rho_j^2) grad W(x_ij)
          -sum_b m_i psi_b (p_i / rho_i^2) grad W(x_ib)
    '''
    forces = np.zeros((particles.nParticles, 3))
    np.add.at(forces, fluidNeighbors.pairI, pairwisePressureForces(particles, fluidNeighbors, kernel))

    if boundaryNeighbors.nPairs > 0:
        pairI = boundaryNeighbors.pairI
        pairB = boundaryNeighbors.pairJ
        pressureTerm = particles.pressures / particles.densities ** 2
        coefficient = -particles.masses[pairI] * boundaries.psi[pairB] * pressureTerm[pairI]
        gradients = kernel.gradientBatch(boundaryNeighbors.separations, boundaryNeighbors.distances)
        np.add.at(forces, pairI, coefficient[:, np.newaxis] * gradients)

    particles.pressureForces = forces


######################################################################
# -- Implicit Incompressible SPH -- #
######################################################################

class ImplicitIncompressiblePressure:
    '''
    IISPH pressure solver.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration (time step, rest density, iteration limits)
    kernel : SphKernel
        Fluid kernel
    '''

    def __init__(self, config: SimulationConfig, kernel: SphKernel) -> None:
        self._config = config
        self._kernel = kernel

    @property
    def dt(self) -> float:
        return self._config.solver.timeStep

    def solve(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
    ) -> PressureSolveReport:
        '''
        Run the full pressure solve and compute the pressure force.

        Parameters:
        -----------
        particles : FluidParticles
            Fluid particles with densities and advection forces computed
        boundaries : BoundaryParticles
            Boundary particles with psi computed
        fluidNeighbors : NeighborLists
            Fluid-fluid lists
        boundaryNeighbors : NeighborLists
            Fluid-boundary lists

        Returns:
        --------
        PressureSolveReport : Iterations, final mean density, convergence flag
        '''
        kernel = self._kernel
        fluidGradients = kernel.gradientBatch(fluidNeighbors.separations, fluidNeighbors.distances)
        boundaryGradients = kernel.gradientBatch(boundaryNeighbors.separations, boundaryNeighbors.distances)

        # PREDICT
        predictVelocity(particles, self.dt)
        self.computeDii(particles, boundaries, fluidNeighbors, boundaryNeighbors,
                        fluidGradients, boundaryGradients)
        self.predictDensity(particles, boundaries, fluidNeighbors, boundaryNeighbors,
                            fluidGradients, boundaryGradients)

        # COEFFICIENTS
        self.initializePressure(particles)
        self.computeAii(particles, boundaries, fluidNeighbors, boundaryNeighbors,
                        fluidGradients, boundaryGradients)

        # ITERATE
        report = self.iterate(particles, boundaries, fluidNeighbors, boundaryNeighbors,
                              fluidGradients, boundaryGradients)

        computePressureForce(particles, boundaries, fluidNeighbors, boundaryNeighbors, kernel)
        return report

    #--------------------------------------------------------------------#
    # -- Coefficients -- #
    #--------------------------------------------------------------------#

    def computeDii(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
        boundaryGradients: np.ndarray,
    ) -> None:
        '''
        Displacement coefficients of each particle's own pressure.

        dii_f = -dt^2 * sum_f m_j / rho_i^2 * grad W(x_ij)
        dii_b = -dt^2 * sum_b psi_b / rho_i^2 * grad W(x_ib)
        '''
        dt2 = self.dt * self.dt
        invRhoSq = 1.0 / particles.densities ** 2

        fluidPart = np.zeros((particles.nParticles, 3))
        np.add.at(
            fluidPart, fluidNeighbors.pairI,
            particles.masses[fluidNeighbors.pairJ][:, np.newaxis] * fluidGradients,
        )
        boundaryPart = np.zeros((particles.nParticles, 3))
        np.add.at(
            boundaryPart, boundaryNeighbors.pairI,
            boundaries.psi[boundaryNeighbors.pairJ][:, np.newaxis] * boundaryGradients,
        )

        particles.diiFluid = -dt2 * invRhoSq[:, np.newaxis] * fluidPart
        particles.diiBoundary = -dt2 * invRhoSq[:, np.newaxis] * boundaryPart

    def predictDensity(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
        boundaryGradients: np.ndarray,
    ) -> None:
        '''
        Density after advection alone.

        rho_adv = rho + dt * ( sum_f m_j (v_adv_i - v_adv_j) . grad W(x_ij)
                             + sum_b psi_b (v_adv_i - v_b) . grad W(x_ib) )
        '''
        vAdv = particles.advectionVelocities
        divergence = np.zeros(particles.nParticles)

        pairI = fluidNeighbors.pairI
        pairJ = fluidNeighbors.pairJ
        relative = vAdv[pairI] - vAdv[pairJ]
        np.add.at(
            divergence, pairI,
            particles.masses[pairJ] * np.sum(relative * fluidGradients, axis=1),
        )

        pairI = boundaryNeighbors.pairI
        pairB = boundaryNeighbors.pairJ
        relative = vAdv[pairI] - boundaries.velocities[pairB]
        np.add.at(
            divergence, pairI,
            boundaries.psi[pairB] * np.sum(relative * boundaryGradients, axis=1),
        )

        particles.advectedDensities = particles.densities + self.dt * divergence

    def initializePressure(self, particles: FluidParticles) -> None:
        '''Warm start: p_l = 0.5 * p of the previous step.'''
        particles.iterationPressures = const.warmStartFactor * particles.pressures

    def computeAii(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
        boundaryGradients: np.ndarray,
    ) -> None:
        '''
        Diagonal of the pressure system.

        aii = sum_f m_j (dii_i - dji) . grad W(x_ij) + sum_b psi_b dii_i . grad W(x_ib)

        with dji = dt^2 * m_i / rho_i^2 * grad W(x_ij).
        '''
        dt2 = self.dt * self.dt
        dii = particles.diiFluid + particles.diiBoundary
        aii = np.zeros(particles.nParticles)

        pairI = fluidNeighbors.pairI
        pairJ = fluidNeighbors.pairJ
        dji = (dt2 * particles.masses[pairI] / particles.densities[pairI] ** 2)[:, np.newaxis] * fluidGradients
        np.add.at(
            aii, pairI,
            particles.masses[pairJ] * np.sum((dii[pairI] - dji) * fluidGradients, axis=1),
        )

        pairI = boundaryNeighbors.pairI
        pairB = boundaryNeighbors.pairJ
        np.add.at(
            aii, pairI,
            boundaries.psi[pairB] * np.sum(dii[pairI] * boundaryGradients, axis=1),
        )

        particles.aii = aii

    #--------------------------------------------------------------------#
    # -- Jacobi Iteration -- #
    #--------------------------------------------------------------------#

    def computeSumDijPj(
        self,
        particles: FluidParticles,
        fluidNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
    ) -> None:
        '''
        Pressure displacement from the neighbors' current iterate.

        sumDijPj_i = -dt^2 * sum_{j != i} m_j / rho_j^2 * p_l_j * grad W(x_ij)
        '''
        dt2 = self.dt * self.dt
        pairI = fluidNeighbors.pairI
        pairJ = fluidNeighbors.pairJ

        weights = particles.masses[pairJ] * particles.iterationPressures[pairJ] / particles.densities[pairJ] ** 2
        sums = np.zeros((particles.nParticles, 3))
        np.add.at(sums, pairI, weights[:, np.newaxis] * fluidGradients)
        particles.sumDijPj = -dt2 * sums

    def computePressure(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
        boundaryGradients: np.ndarray,
    ) -> None:
        '''
        One relaxed Jacobi pass.

        rho~ = rho_adv + sum_f m_j (sumDijPj_i - dii_j p_l_j - (sumDijPj_j - dji p_l_i)) . grad W(x_ij)
                       + sum_b psi_b sumDijPj_i . grad W(x_ib)
        p    = max((1 - omega) p_l + omega / aii * (rho_0 - rho~), 0)
        rho_corr = rho~ + aii * p_l
        '''
        dt2 = self.dt * self.dt
        omega = self._config.solver.relaxation
        restDensity = self._config.fluid.restDensity

        previous = particles.iterationPressures
        sumDijPj = particles.sumDijPj
        dii = particles.diiFluid + particles.diiBoundary

        pairI = fluidNeighbors.pairI
        pairJ = fluidNeighbors.pairJ
        dji = (dt2 * particles.masses[pairI] / particles.densities[pairI] ** 2)[:, np.newaxis] * fluidGradients
        aux = (
            sumDijPj[pairI]
            - dii[pairJ] * previous[pairJ][:, np.newaxis]
            - (sumDijPj[pairJ] - dji * previous[pairI][:, np.newaxis])
        )
        fluidSum = np.zeros(particles.nParticles)
        np.add.at(fluidSum, pairI, particles.masses[pairJ] * np.sum(aux * fluidGradients, axis=1))

        pairI = boundaryNeighbors.pairI
        pairB = boundaryNeighbors.pairJ
        boundarySum = np.zeros(particles.nParticles)
        np.add.at(
            boundarySum, pairI,
            boundaries.psi[pairB] * np.sum(sumDijPj[pairI] * boundaryGradients, axis=1),
        )

        densityTilde = particles.advectedDensities + fluidSum + boundarySum
        aii = particles.aii

        updated = np.zeros(particles.nParticles)
        solvable = np.abs(aii) > _aiiEpsilon
        updated[solvable] = (
            (1.0 - omega) * previous[solvable]
            + omega / aii[solvable] * (restDensity - densityTilde[solvable])
        )
        updated = np.maximum(updated, 0.0)

        particles.correctedDensities = densityTilde + aii * previous
        particles.iterationPressures = updated
        particles.pressures = updated

    def iterate(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
        fluidGradients: np.ndarray,
        boundaryGradients: np.ndarray,
    ) -> PressureSolveReport:
        '''
        Jacobi passes until the mean compression is tolerated.

        Stops once at least minIterations passes ran and
        mean(rho_corr) - rho_0 <= maxDensityError, or at maxIterations.

        Returns:
        --------
        PressureSolveReport : Outcome of the iteration
        '''
        solver = self._config.solver
        restDensity = self._config.fluid.restDensity

        iterations = 0
        meanDensity = restDensity
        converged = False

        while iterations < solver.maxIterations:
            self.computeSumDijPj(particles, fluidNeighbors, fluidGradients)
            self.computePressure(particles, boundaries, fluidNeighbors, boundaryNeighbors,
                                 fluidGradients, boundaryGradients)
            iterations += 1

            meanDensity = computeMeanCorrectedDensity(particles)
            if iterations >= solver.minIterations and meanDensity - restDensity <= solver.maxDensityError:
                converged = True
                break

        return PressureSolveReport(
            iterations=iterations,
            meanCorrectedDensity=meanDensity,
            converged=converged,
        )


def computeMeanCorrectedDensity(particles: FluidParticles) -> float:
    '''Population mean of the corrected density [kg/m^3].'''
    if particles.nParticles == 0:
        return 0.0
    return float(np.mean(particles.correctedDensities))


######################################################################
# -- Weakly Compressible SPH -- #
######################################################################

class WeaklyCompressiblePressure:
    '''
    Tait equation of state pressure with Monaghan boundary repulsion.

    p = B * ((rho / rho_0)^gamma - 1), clamped to p >= 0
    B = rho_0 * c_s^2 / gamma

    Boundary neighbors push with f_i = m_i * Gamma(|x_ib|) * x_ib / |x_ib|.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration
    kernel : SphKernel
        Fluid kernel
    '''

    def __init__(self, config: SimulationConfig, kernel: SphKernel) -> None:
        self._config = config
        self._kernel = kernel
        self._boundaryKernel = BoundaryKernel(config.boundary.smoothingRadius, config.fluid.soundSpeed)
        self._stiffness = config.fluid.restDensity * config.fluid.soundSpeed ** 2 / const.gamma

    def computePressure(self, particles: FluidParticles) -> None:
        '''Evaluate the equation of state from the current densities.'''
        restDensity = self._config.fluid.restDensity
        ratio = particles.densities / restDensity
        particles.pressures = np.maximum(self._stiffness * (ratio ** const.gamma - 1.0), 0.0)

    def solve(
        self,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        fluidNeighbors: NeighborLists,
        boundaryNeighbors: NeighborLists,
    ) -> PressureSolveReport:
        '''
        Compute pressure and pressure force in one pass.

        Returns:
        --------
        PressureSolveReport : Zero iterations, mean density, always converged
        '''
        predictVelocity(particles, self._config.solver.timeStep)
        self.computePressure(particles)

        # Boundary pressure is carried by the repulsion term instead
        emptyBoundary = NeighborLists.empty(particles.nParticles)
        computePressureForce(particles, boundaries, fluidNeighbors, emptyBoundary, self._kernel)
        particles.pressureForces += self.boundaryRepulsion(particles, boundaryNeighbors)

        particles.correctedDensities = particles.densities.copy()
        return PressureSolveReport(
            iterations=0,
            meanCorrectedDensity=computeMeanCorrectedDensity(particles),
            converged=True,
        )

    def boundaryRepulsion(self, particles: FluidParticles, boundaryNeighbors: NeighborLists) -> np.ndarray:
        '''Monaghan repulsion from boundary particles [N], shape (N, 3).'''
        forces = np.zeros((particles.nParticles, 3))
        active = boundaryNeighbors.distances >= const.distanceEpsilon
        if not np.any(active):
            return forces

        pairI = boundaryNeighbors.pairI[active]
        x = boundaryNeighbors.separations[active]
        r = boundaryNeighbors.distances[active]

        magnitude = particles.masses[pairI] * self._boundaryKernel.valueBatch(r) / r
        np.add.at(forces, pairI, magnitude[:, np.newaxis] * x)
        return forces


######################################################################
# -- Factory -- #
######################################################################

def createPressureSolver(
    formulation: str,
    config: SimulationConfig,
    kernel: SphKernel | None = None,
) -> PressureSolver:
    '''
    Create a pressure solver by formulation name.

    Parameters:
    -----------
    formulation : str
        'implicitIncompressible' or 'weaklyCompressible'
    config : SimulationConfig
        Simulation configuration
    kernel : SphKernel | None
        Fluid kernel, built from the configuration when omitted

    Returns:
    --------
    PressureSolver : Pressure solver instance

    Raises:
    -------
    ValueError : If the formulation is unknown
    '''
    if kernel is None:
        kernel = MonaghanKernel(config.smoothingRadius)

    if formulation == 'implicitIncompressible':
        return ImplicitIncompressiblePressure(config, kernel)
    elif formulation == 'weaklyCompressible':
        return WeaklyCompressiblePressure(config, kernel)
    else:
        raise ValueError(
            f"Unknown pressure formulation: '{formulation}'. "
            f"Available: {', '.join(pressureFormulations)}"
        )
