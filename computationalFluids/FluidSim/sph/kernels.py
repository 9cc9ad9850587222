# -- SPH Smoothing Kernels -- #

'''
Radial kernel functions for SPH interpolation in 3D.

Three stateless kernels, each configured once with its radius:

- MonaghanKernel: cubic spline (M4) used for density, normals,
  viscosity and pressure. Support [0, 2h].
- AkinciKernel: cohesion and adhesion profiles for surface tension
  and fluid-boundary adhesion. Support c = 2h.
- BoundaryKernel: legacy Monaghan boundary repulsion profile, used
  by the weakly compressible formulation only.

Every kernel has a scalar form (single pair) and a batch form
operating on arrays of pair distances.

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Monaghan (2005) -- Smoothed particle hydrodynamics (boundary force)
Akinci et al. (2013) -- Versatile Surface Tension and Adhesion for SPH Fluids
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from computationalFluids.FluidSim import constants as const


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SphKernel(Protocol):
    '''Protocol for interpolation kernels with a gradient.'''

    def value(self, r: float) -> float:
        '''Evaluate W(r).'''
        ...

    def gradient(self, rVec: np.ndarray) -> np.ndarray:
        '''Evaluate nabla W for rVec = x_i - x_j.'''
        ...

    def valueBatch(self, distances: np.ndarray) -> np.ndarray:
        '''Evaluate W for an array of distances.'''
        ...

    def gradientBatch(self, rVecs: np.ndarray, distances: np.ndarray) -> np.ndarray:
        '''Evaluate nabla W for an array of separation vectors.'''
        ...


######################################################################
# -- Monaghan Cubic Spline Kernel -- #
######################################################################

class MonaghanKernel:
    '''
    Cubic spline (M4) smoothing kernel in 3D.

    W(q) = sigma * {
        1 - (3/2)*q^2 + (3/4)*q^3    for 0 <= q < 1
        (1/4)*(2 - q)^3               for 1 <= q < 2
        0                              for q >= 2
    }

    with q = r/h and sigma = 1 / (pi * h^3).

    Parameters:
    -----------
    h : float
        Smoothing radius [m]
    '''

    def __init__(self, h: float) -> None:
        self._h = h
        self._sigma = 1.0 / (math.pi * h * h * h)

    @property
    def h(self) -> float:
        '''Smoothing radius [m].'''
        return self._h

    @property
    def supportRadius(self) -> float:
        '''Support radius 2h [m].'''
        return 2.0 * self._h

    def value(self, r: float) -> float:
        '''
        Evaluate W(r).

        Parameters:
        -----------
        r : float
            Distance between particles [m]

        Returns:
        --------
        float : Kernel value [1/m^3]
        '''
        q = r / self._h

        if q < 0.0:
            return 0.0
        elif q < 1.0:
            return self._sigma * (1.0 - 1.5 * q * q + 0.75 * q * q * q)
        elif q < 2.0:
            twoMinusQ = 2.0 - q
            return self._sigma * 0.25 * twoMinusQ * twoMinusQ * twoMinusQ
        else:
            return 0.0

    def gradientMagnitude(self, r: float) -> float:
        '''
        Scalar part of the gradient, dW/dr.

        Parameters:
        -----------
        r : float
            Distance between particles [m]

        Returns:
        --------
        float : dW/dr [1/m^4]
        '''
        h = self._h
        q = r / h

        if r < const.distanceEpsilon:
            # Zero by symmetry
            return 0.0
        elif q < 1.0:
            return self._sigma * (-3.0 * q + 2.25 * q * q) / h
        elif q < 2.0:
            twoMinusQ = 2.0 - q
            return self._sigma * (-0.75 * twoMinusQ * twoMinusQ) / h
        else:
            return 0.0

    def gradient(self, rVec: np.ndarray) -> np.ndarray:
        '''
        Evaluate the gradient vector nabla W.

        grad_W = (dW/dr) * (rVec / |rVec|)

        Parameters:
        -----------
        rVec : np.ndarray
            Separation x_i - x_j [m], shape (3,)

        Returns:
        --------
        np.ndarray : Gradient [1/m^4], zero vector for coincident particles
        '''
        rVec = np.asarray(rVec, dtype=float)
        r = float(np.linalg.norm(rVec))
        if r < const.distanceEpsilon:
            return np.zeros_like(rVec)
        return self.gradientMagnitude(r) * rVec / r

    ######################################################################
    # -- Vectorized (Batch) Operations -- #
    ######################################################################

    def valueBatch(self, distances: np.ndarray) -> np.ndarray:
        '''
        Evaluate W for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Pair distances [m], shape (P,)

        Returns:
        --------
        np.ndarray : Kernel values, shape (P,)
        '''
        q = distances / self._h
        result = np.zeros_like(q)

        inner = q < 1.0
        qInner = q[inner]
        result[inner] = self._sigma * (1.0 - 1.5 * qInner ** 2 + 0.75 * qInner ** 3)

        outer = (q >= 1.0) & (q < 2.0)
        twoMinusQ = 2.0 - q[outer]
        result[outer] = self._sigma * 0.25 * twoMinusQ ** 3

        return result

    def gradientMagnitudeBatch(self, distances: np.ndarray) -> np.ndarray:
        '''
        Evaluate dW/dr for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Pair distances [m], shape (P,)

        Returns:
        --------
        np.ndarray : dW/dr values, shape (P,)
        '''
        h = self._h
        q = distances / h
        result = np.zeros_like(q)

        inner = (distances >= const.distanceEpsilon) & (q < 1.0)
        qInner = q[inner]
        result[inner] = self._sigma * (-3.0 * qInner + 2.25 * qInner ** 2) / h

        outer = (q >= 1.0) & (q < 2.0)
        twoMinusQ = 2.0 - q[outer]
        result[outer] = self._sigma * (-0.75 * twoMinusQ ** 2) / h

        return result

    def gradientBatch(self, rVecs: np.ndarray, distances: np.ndarray) -> np.ndarray:
        '''
        Evaluate gradient vectors for an array of pairs.

        Parameters:
        -----------
        rVecs : np.ndarray
            Separations x_i - x_j, shape (P, 3)
        distances : np.ndarray
            |rVecs|, shape (P,)

        Returns:
        --------
        np.ndarray : Gradients, shape (P, 3)
        '''
        dwdr = self.gradientMagnitudeBatch(distances)
        safeDistances = np.where(distances >= const.distanceEpsilon, distances, 1.0)
        return (dwdr / safeDistances)[:, np.newaxis] * rVecs


######################################################################
# -- Akinci Cohesion / Adhesion Kernel -- #
######################################################################

class AkinciKernel:
    '''
    Cohesion and adhesion profiles of Akinci et al. (2013).

    Cohesion (spline with repulsive core):
        C(r) = 32 / (pi * c^9) * {
            (c - r)^3 * r^3                   for c/2 < r <= c
            2 * (c - r)^3 * r^3 - c^6 / 64    for 0 < r <= c/2
            0                                 otherwise
        }

    Adhesion:
        A(r) = 0.007 / c^3.25 * (-4 r^2 / c + 6 r - 2 c)^(1/4)
        for c/2 < r <= c, 0 otherwise

    Both are purely radial; the caller applies the direction.

    Parameters:
    -----------
    supportRadius : float
        Support radius c [m], twice the fluid smoothing radius
    '''

    def __init__(self, supportRadius: float) -> None:
        c = supportRadius
        self._c = c
        self._cohesionFactor = 32.0 / (math.pi * c ** 9)
        self._cohesionOffset = c ** 6 / 64.0
        self._adhesionFactor = 0.007 / c ** 3.25

    @property
    def supportRadius(self) -> float:
        '''Support radius c [m].'''
        return self._c

    def cohesionValue(self, r: float) -> float:
        '''Cohesion profile C(r).'''
        c = self._c
        if 2.0 * r > c and r <= c:
            return self._cohesionFactor * (c - r) ** 3 * r ** 3
        elif r > 0.0 and 2.0 * r <= c:
            return self._cohesionFactor * (2.0 * (c - r) ** 3 * r ** 3 - self._cohesionOffset)
        return 0.0

    def adhesionValue(self, r: float) -> float:
        '''Adhesion profile A(r).'''
        c = self._c
        if 2.0 * r > c and r <= c:
            base = max(-4.0 * r * r / c + 6.0 * r - 2.0 * c, 0.0)
            return self._adhesionFactor * base ** 0.25
        return 0.0

    def cohesionBatch(self, distances: np.ndarray) -> np.ndarray:
        '''Cohesion profile for an array of distances.'''
        c = self._c
        result = np.zeros_like(distances)

        outer = (2.0 * distances > c) & (distances <= c)
        rOuter = distances[outer]
        result[outer] = self._cohesionFactor * (c - rOuter) ** 3 * rOuter ** 3

        inner = (distances > 0.0) & (2.0 * distances <= c)
        rInner = distances[inner]
        result[inner] = self._cohesionFactor * (
            2.0 * (c - rInner) ** 3 * rInner ** 3 - self._cohesionOffset
        )

        return result

    def adhesionBatch(self, distances: np.ndarray) -> np.ndarray:
        '''Adhesion profile for an array of distances.'''
        c = self._c
        result = np.zeros_like(distances)

        active = (2.0 * distances > c) & (distances <= c)
        rActive = distances[active]
        # The polynomial is >= 0 on (c/2, c]; clip round-off before the root
        base = np.maximum(-4.0 * rActive ** 2 / c + 6.0 * rActive - 2.0 * c, 0.0)
        result[active] = self._adhesionFactor * base ** 0.25

        return result


######################################################################
# -- Legacy Boundary Kernel -- #
######################################################################

class BoundaryKernel:
    '''
    Monaghan boundary repulsion profile.

    Gamma(r) = 0.02 * c_s^2 / r * {
        2/3                  for 0 < q < 2/3
        2q - 1.5 q^2         for 2/3 <= q < 1
        0.5 * (2 - q)^2      for 1 <= q < 2
        0                    otherwise
    }

    with q = r / h_b. Only the weakly compressible formulation uses it.

    Parameters:
    -----------
    h : float
        Boundary smoothing radius h_b [m]
    soundSpeed : float
        Numerical speed of sound c_s [m/s]
    '''

    def __init__(self, h: float, soundSpeed: float) -> None:
        self._h = h
        self._soundSpeed = soundSpeed
        self._factor = 0.02 * soundSpeed * soundSpeed

    def value(self, r: float) -> float:
        '''Boundary repulsion magnitude per unit mass Gamma(r) [m/s^2].'''
        if r < const.distanceEpsilon:
            return 0.0

        q = r / self._h
        if q < 2.0 / 3.0:
            shape = 2.0 / 3.0
        elif q < 1.0:
            shape = 2.0 * q - 1.5 * q * q
        elif q < 2.0:
            shape = 0.5 * (2.0 - q) ** 2
        else:
            return 0.0
        return self._factor * shape / r

    def valueBatch(self, distances: np.ndarray) -> np.ndarray:
        '''Boundary repulsion for an array of distances.'''
        q = distances / self._h
        shape = np.zeros_like(distances)

        near = (distances >= const.distanceEpsilon) & (q < 2.0 / 3.0)
        shape[near] = 2.0 / 3.0

        middle = (q >= 2.0 / 3.0) & (q < 1.0)
        shape[middle] = 2.0 * q[middle] - 1.5 * q[middle] ** 2

        outer = (q >= 1.0) & (q < 2.0)
        shape[outer] = 0.5 * (2.0 - q[outer]) ** 2

        safeDistances = np.where(distances >= const.distanceEpsilon, distances, 1.0)
        return self._factor * shape / safeDistances
