# -- Density, Normal and Advection Force Evaluation -- #

'''
Per-particle SPH quantities evaluated over neighbor pairs.

Each function reads arrays committed by the previous phase and writes
only its own target arrays. Pair contributions are accumulated with
np.add.at scatter-adds, so the result does not depend on the order in
which pairs are visited.

Pair convention: for a pair (i, j) the separation is x = x_i - x_j and
the kernel gradient is grad W(x), taken with the fluid smoothing radius
for both fluid and boundary neighbors.

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Akinci et al. (2012) -- Versatile Rigid-Fluid Coupling for Incompressible SPH
Akinci et al. (2013) -- Versatile Surface Tension and Adhesion for SPH Fluids
'''

from __future__ import annotations

import numpy as np

from computationalFluids.FluidSim import constants as const
from computationalFluids.FluidSim.sph.kernels import AkinciKernel, MonaghanKernel
from computationalFluids.FluidSim.sph.neighborSearch import NeighborLists
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.protocols import SimulationConfig


######################################################################
# -- Density and Boundary Volume -- #
######################################################################

def computeDensity(
    particles: FluidParticles,
    boundaries: BoundaryParticles,
    fluidNeighbors: NeighborLists,
    boundaryNeighbors: NeighborLists,
    kernel: MonaghanKernel,
) -> None:
    '''
    Interpolate the density of every fluid particle.

    rho_i = sum_f m_j W(x_ij) + sum_b psi_b W(x_ib)

    The fluid sum includes the particle itself.

    Parameters:
    -----------
    particles : FluidParticles
        Fluid particles, densities are written in place
    boundaries : BoundaryParticles
        Boundary particles with psi computed
    fluidNeighbors : NeighborLists
        Fluid-fluid lists (self included)
    boundaryNeighbors : NeighborLists
        Fluid-boundary lists
    kernel : MonaghanKernel
        Fluid kernel
    '''
    densities = np.zeros(particles.nParticles)

    wFluid = kernel.valueBatch(fluidNeighbors.distances)
    np.add.at(densities, fluidNeighbors.pairI, particles.masses[fluidNeighbors.pairJ] * wFluid)

    wBoundary = kernel.valueBatch(boundaryNeighbors.distances)
    np.add.at(densities, boundaryNeighbors.pairI, boundaries.psi[boundaryNeighbors.pairJ] * wBoundary)

    particles.densities = densities


def computeBoundaryPsi(
    boundaries: BoundaryParticles,
    boundaryNeighbors: NeighborLists,
    kernel: MonaghanKernel,
    restDensity: float,
) -> None:
    '''
    Compute the volume weight of every boundary particle.

    psi_b = rho_0 / sum_k W(x_b - x_k), over boundary particles k near b
    (b included), so that a boundary sheet contributes like a fluid at
    rest density regardless of its sampling.

    Parameters:
    -----------
    boundaries : BoundaryParticles
        Boundary particles, psi is written in place
    boundaryNeighbors : NeighborLists
        Boundary-boundary lists (self included)
    kernel : MonaghanKernel
        Fluid kernel
    restDensity : float
        Rest density rho_0 [kg/m^3]
    '''
    weights = np.zeros(boundaries.nParticles)
    np.add.at(weights, boundaryNeighbors.pairI, kernel.valueBatch(boundaryNeighbors.distances))

    psi = np.zeros(boundaries.nParticles)
    valid = weights > 0.0
    psi[valid] = restDensity / weights[valid]
    boundaries.psi = psi


######################################################################
# -- Normals and Surface Classification -- #
######################################################################

def computeNormals(
    particles: FluidParticles,
    fluidNeighbors: NeighborLists,
    kernel: MonaghanKernel,
) -> None:
    '''
    Scaled color-field normals.

    n_i = h * sum_{j != i} (m_j / rho_j) grad W(x_ij)

    The self pair has a zero gradient and drops out.
    '''
    pairI = fluidNeighbors.pairI
    pairJ = fluidNeighbors.pairJ

    gradients = kernel.gradientBatch(fluidNeighbors.separations, fluidNeighbors.distances)
    volumes = _safeRatio(particles.masses[pairJ], particles.densities[pairJ])

    normals = np.zeros((particles.nParticles, 3))
    np.add.at(normals, pairI, volumes[:, np.newaxis] * gradients)
    particles.normals = kernel.h * normals


def classifySurface(particles: FluidParticles, threshold: float = const.surfaceThreshold) -> None:
    '''Flag particles whose squared normal length exceeds the threshold.'''
    particles.isSurface = np.sum(particles.normals * particles.normals, axis=1) > threshold


######################################################################
# -- Advection (Non-Pressure) Forces -- #
######################################################################

def computeAdvectionForces(
    particles: FluidParticles,
    boundaries: BoundaryParticles,
    fluidNeighbors: NeighborLists,
    boundaryNeighbors: NeighborLists,
    kernel: MonaghanKernel,
    akinciKernel: AkinciKernel,
    config: SimulationConfig,
) -> None:
    '''
    Sum gravity, viscosity, surface tension, boundary friction and
    boundary adhesion into particles.advectionForces.

    Parameters:
    -----------
    particles : FluidParticles
        Fluid particles with densities and normals computed
    boundaries : BoundaryParticles
        Boundary particles with psi computed
    fluidNeighbors : NeighborLists
        Fluid-fluid lists
    boundaryNeighbors : NeighborLists
        Fluid-boundary lists
    kernel : MonaghanKernel
        Fluid kernel
    akinciKernel : AkinciKernel
        Cohesion / adhesion kernel
    config : SimulationConfig
        Simulation configuration
    '''
    gravity = np.asarray(config.gravity, dtype=float)
    forces = particles.masses[:, np.newaxis] * gravity[np.newaxis, :]

    forces += viscosityForces(particles, fluidNeighbors, kernel, config)
    forces += surfaceTensionForces(particles, fluidNeighbors, akinciKernel, config)
    forces += boundaryFrictionForces(particles, boundaries, boundaryNeighbors, kernel, config)
    forces += boundaryAdhesionForces(particles, boundaries, boundaryNeighbors, akinciKernel, config)

    particles.advectionForces = forces


def viscosityForces(
    particles: FluidParticles,
    fluidNeighbors: NeighborLists,
    kernel: MonaghanKernel,
    config: SimulationConfig,
) -> np.ndarray:
    '''
    Monaghan artificial viscosity between fluid particles.

    nu = 2 * alpha * h * c_s / (rho_i + rho_j)
    Pi = -nu * min(v_ij . x_ij, 0) / (|x_ij|^2 + 0.01 h^2)
    f_i += -m_i * m_j * Pi * grad W(x_ij)

    Only approaching pairs (v_ij . x_ij < 0) contribute.

    Returns:
    --------
    np.ndarray : Viscosity forces [N], shape (N, 3)
    '''
    h = config.smoothingRadius
    pairI = fluidNeighbors.pairI
    pairJ = fluidNeighbors.pairJ
    x = fluidNeighbors.separations

    v = particles.velocities[pairI] - particles.velocities[pairJ]
    vDotX = np.sum(v * x, axis=1)

    densitySum = particles.densities[pairI] + particles.densities[pairJ]
    nu = _safeRatio(2.0 * config.fluid.viscosity * h * config.fluid.soundSpeed, densitySum)
    pi = -nu * np.minimum(vDotX, 0.0) / (fluidNeighbors.distances ** 2 + const.viscosityEpsilon * h * h)

    gradients = kernel.gradientBatch(x, fluidNeighbors.distances)
    coefficient = -particles.masses[pairI] * particles.masses[pairJ] * pi

    forces = np.zeros((particles.nParticles, 3))
    np.add.at(forces, pairI, coefficient[:, np.newaxis] * gradients)
    return forces


def surfaceTensionForces(
    particles: FluidParticles,
    fluidNeighbors: NeighborLists,
    akinciKernel: AkinciKernel,
    config: SimulationConfig,
) -> np.ndarray:
    '''
    Akinci surface tension: cohesion plus curvature minimisation.

    K_ij = 2 * rho_0 / (rho_i + rho_j)
    f_cohesion  = -gamma * m_i * m_j * C(|x_ij|) * x_ij / |x_ij|
    f_curvature = -gamma * m_i * (n_i - n_j)
    f_i += K_ij * (f_cohesion + f_curvature)

    Applied only to pairs where i or j is a surface particle.

    Returns:
    --------
    np.ndarray : Surface tension forces [N], shape (N, 3)
    '''
    forces = np.zeros((particles.nParticles, 3))
    gamma = config.fluid.cohesion
    if gamma == 0.0 or fluidNeighbors.nPairs == 0:
        return forces

    pairI = fluidNeighbors.pairI
    pairJ = fluidNeighbors.pairJ
    active = (particles.isSurface[pairI] | particles.isSurface[pairJ]) & (
        fluidNeighbors.distances >= const.distanceEpsilon
    )
    if not np.any(active):
        return forces

    pairI = pairI[active]
    pairJ = pairJ[active]
    x = fluidNeighbors.separations[active]
    r = fluidNeighbors.distances[active]

    massI = particles.masses[pairI]
    kij = 2.0 * config.fluid.restDensity / (particles.densities[pairI] + particles.densities[pairJ])

    cohesion = (-gamma * massI * particles.masses[pairJ] * akinciKernel.cohesionBatch(r) / r)[:, np.newaxis] * x
    curvature = -gamma * massI[:, np.newaxis] * (particles.normals[pairI] - particles.normals[pairJ])

    np.add.at(forces, pairI, kij[:, np.newaxis] * (cohesion + curvature))
    return forces


def boundaryFrictionForces(
    particles: FluidParticles,
    boundaries: BoundaryParticles,
    boundaryNeighbors: NeighborLists,
    kernel: MonaghanKernel,
    config: SimulationConfig,
) -> np.ndarray:
    '''
    Viscous friction against boundary particles.

    nu = sigma * h * c_s / (2 * rho_i)
    Pi = -nu * min(v_ib . x_ib, 0) / (|x_ib|^2 + 0.01 h^2)
    f_i += -m_i * psi_b * Pi * grad W(x_ib)

    Returns:
    --------
    np.ndarray : Friction forces [N], shape (N, 3)
    '''
    forces = np.zeros((particles.nParticles, 3))
    if boundaryNeighbors.nPairs == 0:
        return forces

    h = config.smoothingRadius
    pairI = boundaryNeighbors.pairI
    pairB = boundaryNeighbors.pairJ
    x = boundaryNeighbors.separations

    v = particles.velocities[pairI] - boundaries.velocities[pairB]
    vDotX = np.sum(v * x, axis=1)

    nu = _safeRatio(
        config.boundary.friction * h * config.fluid.soundSpeed * np.ones_like(vDotX),
        2.0 * particles.densities[pairI],
    )
    pi = -nu * np.minimum(vDotX, 0.0) / (boundaryNeighbors.distances ** 2 + const.viscosityEpsilon * h * h)

    gradients = kernel.gradientBatch(x, boundaryNeighbors.distances)
    coefficient = -particles.masses[pairI] * boundaries.psi[pairB] * pi

    np.add.at(forces, pairI, coefficient[:, np.newaxis] * gradients)
    return forces


def boundaryAdhesionForces(
    particles: FluidParticles,
    boundaries: BoundaryParticles,
    boundaryNeighbors: NeighborLists,
    akinciKernel: AkinciKernel,
    config: SimulationConfig,
) -> np.ndarray:
    '''
    Akinci adhesion towards boundary particles.

    f_i += -beta * m_i * psi_b * A(|x_ib|) * x_ib / |x_ib|

    Returns:
    --------
    np.ndarray : Adhesion forces [N], shape (N, 3)
    '''
    forces = np.zeros((particles.nParticles, 3))
    beta = config.boundary.adhesion
    if beta == 0.0 or boundaryNeighbors.nPairs == 0:
        return forces

    active = boundaryNeighbors.distances >= const.distanceEpsilon
    pairI = boundaryNeighbors.pairI[active]
    pairB = boundaryNeighbors.pairJ[active]
    x = boundaryNeighbors.separations[active]
    r = boundaryNeighbors.distances[active]

    magnitude = -beta * particles.masses[pairI] * boundaries.psi[pairB] * akinciKernel.adhesionBatch(r) / r
    np.add.at(forces, pairI, magnitude[:, np.newaxis] * x)
    return forces


def _safeRatio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    '''numerator / denominator, 0 where the denominator is not positive.'''
    numerator = np.asarray(numerator, dtype=float)
    denominator = np.asarray(denominator, dtype=float)
    result = np.zeros(np.broadcast(numerator, denominator).shape)
    valid = denominator > 0.0
    result[valid] = (np.broadcast_to(numerator, result.shape)[valid]
                     / np.broadcast_to(denominator, result.shape)[valid])
    return result
