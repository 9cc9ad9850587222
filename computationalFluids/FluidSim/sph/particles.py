# -- SPH Particle Storage -- #

'''
Structure-of-arrays storage for fluid and boundary particles.

Every per-particle quantity is one contiguous NumPy array so that the
solver phases can be evaluated as vectorized passes over neighbor
pairs. Fluid particles only grow (through sources, between steps) and
are reordered only as a whole by `permute`.
'''

from __future__ import annotations

from dataclasses import dataclass, fields

import numpy as np


def _zerosVector(n: int) -> np.ndarray:
    return np.zeros((n, 3))


def _zerosScalar(n: int) -> np.ndarray:
    return np.zeros(n)


######################################################################
# -- Fluid Particles -- #
######################################################################

@dataclass
class FluidParticles:
    '''
    Fluid particle state.

    Vector quantities have shape (N, 3), scalar quantities shape (N,).
    Only positions, velocities and masses are inputs; the other arrays
    are scratch fields recomputed by the solver phases each step.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions [m]
    velocities : np.ndarray
        Particle velocities [m/s]
    masses : np.ndarray
        Particle masses [kg]
    densities : np.ndarray
        Interpolated densities [kg/m^3]
    advectionVelocities : np.ndarray
        Velocities predicted from non-pressure forces [m/s]
    advectedDensities : np.ndarray
        Densities predicted from the advection velocities [kg/m^3]
    correctedDensities : np.ndarray
        Densities corrected by the current pressure iterate [kg/m^3]
    pressures : np.ndarray
        Pressures [Pa]
    iterationPressures : np.ndarray
        Pressure iterate of the previous Jacobi pass [Pa]
    aii : np.ndarray
        Diagonal of the pressure system
    diiFluid : np.ndarray
        Displacement coefficient from fluid neighbors
    diiBoundary : np.ndarray
        Displacement coefficient from boundary neighbors
    sumDijPj : np.ndarray
        Pressure displacement contributed by the neighbors
    advectionForces : np.ndarray
        Non-pressure forces [N]
    pressureForces : np.ndarray
        Pressure forces [N]
    normals : np.ndarray
        Scaled color-field normals [-]
    isSurface : np.ndarray
        Surface particle flags
    '''

    positions: np.ndarray
    velocities: np.ndarray
    masses: np.ndarray
    densities: np.ndarray = None
    advectionVelocities: np.ndarray = None
    advectedDensities: np.ndarray = None
    correctedDensities: np.ndarray = None
    pressures: np.ndarray = None
    iterationPressures: np.ndarray = None
    aii: np.ndarray = None
    diiFluid: np.ndarray = None
    diiBoundary: np.ndarray = None
    sumDijPj: np.ndarray = None
    advectionForces: np.ndarray = None
    pressureForces: np.ndarray = None
    normals: np.ndarray = None
    isSurface: np.ndarray = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        n = self.positions.shape[0]
        self.velocities = np.asarray(self.velocities, dtype=float).reshape(n, 3)
        self.masses = np.broadcast_to(np.asarray(self.masses, dtype=float), (n,)).copy()

        for name in ('densities', 'advectedDensities', 'correctedDensities',
                     'pressures', 'iterationPressures', 'aii'):
            if getattr(self, name) is None:
                setattr(self, name, _zerosScalar(n))
        for name in ('advectionVelocities', 'diiFluid', 'diiBoundary',
                     'sumDijPj', 'advectionForces', 'pressureForces', 'normals'):
            if getattr(self, name) is None:
                setattr(self, name, _zerosVector(n))
        if self.isSurface is None:
            self.isSurface = np.ones(n, dtype=bool)

    @property
    def nParticles(self) -> int:
        '''Number of fluid particles.'''
        return self.positions.shape[0]

    def __len__(self) -> int:
        return self.nParticles

    @classmethod
    def fromPositions(
        cls,
        positions: np.ndarray,
        mass: float,
        velocities: np.ndarray | None = None,
    ) -> FluidParticles:
        '''
        Create fluid particles with uniform mass.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        mass : float
            Mass of every particle [kg]
        velocities : np.ndarray | None
            Initial velocities [m/s], zero when omitted

        Returns:
        --------
        FluidParticles : Particles at rest state
        '''
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        n = positions.shape[0]
        if velocities is None:
            velocities = np.zeros((n, 3))
        return cls(positions=positions.copy(), velocities=velocities, masses=np.full(n, mass))

    def permute(self, order: np.ndarray) -> None:
        '''
        Reorder every per-particle array by `order` in one swap.

        Parameters:
        -----------
        order : np.ndarray
            Permutation of range(nParticles)
        '''
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name)[order])

    def append(self, positions: np.ndarray, velocities: np.ndarray, mass: float) -> None:
        '''
        Append new particles with zeroed scratch fields.

        Appended particles are flagged as surface particles until the
        next normal evaluation.

        Parameters:
        -----------
        positions : np.ndarray
            New positions [m], shape (K, 3)
        velocities : np.ndarray
            New velocities [m/s], shape (K, 3)
        mass : float
            Mass of each new particle [kg]
        '''
        added = FluidParticles(positions=positions, velocities=velocities, masses=mass)
        if added.nParticles == 0:
            return
        for f in fields(self):
            merged = np.concatenate([getattr(self, f.name), getattr(added, f.name)])
            setattr(self, f.name, merged)

    def kineticEnergy(self) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * sum_i m_i * |v_i|^2

        Returns:
        --------
        float : Kinetic energy [J]
        '''
        speedsSq = np.sum(self.velocities * self.velocities, axis=1)
        return float(0.5 * np.sum(self.masses * speedsSq))

    def maxSpeed(self) -> float:
        '''Maximum velocity magnitude [m/s].'''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def realVolume(self) -> float:
        '''Fluid volume sum_i m_i / rho_i [m^3] over particles with positive density.'''
        valid = self.densities > 0.0
        return float(np.sum(self.masses[valid] / self.densities[valid]))


######################################################################
# -- Boundary Particles -- #
######################################################################

@dataclass
class BoundaryParticles:
    '''
    Static boundary particle state.

    Parameters:
    -----------
    positions : np.ndarray
        Boundary positions [m], shape (M, 3)
    velocities : np.ndarray
        Boundary velocities [m/s], shape (M, 3), zero for static walls
    psi : np.ndarray
        Boundary volume weights [kg], shape (M,)
    '''

    positions: np.ndarray
    velocities: np.ndarray = None
    psi: np.ndarray = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        m = self.positions.shape[0]
        if self.velocities is None:
            self.velocities = _zerosVector(m)
        else:
            self.velocities = np.asarray(self.velocities, dtype=float).reshape(m, 3)
        if self.psi is None:
            self.psi = _zerosScalar(m)

    @property
    def nParticles(self) -> int:
        '''Number of boundary particles.'''
        return self.positions.shape[0]

    def __len__(self) -> int:
        return self.nParticles

    def translate(self, offset: np.ndarray) -> None:
        '''
        Shift all boundary particles by a constant offset.

        A rigid translation keeps the relative layout, so psi stays valid.

        Parameters:
        -----------
        offset : np.ndarray
            Translation [m], shape (3,)
        '''
        self.positions = self.positions + np.asarray(offset, dtype=float)
