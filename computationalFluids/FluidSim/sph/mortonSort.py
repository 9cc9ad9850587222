# -- Morton (Z-order) Resequencing -- #

'''
Z-order resequencing of the fluid particle arrays.

Particles are sorted by the Morton key of their grid cell so that
particles close in space are close in memory. The sort is stable:
particles sharing a cell keep their relative order.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
'''

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from computationalFluids.FluidSim import constants as const

if TYPE_CHECKING:
    from computationalFluids.FluidSim.sph.neighborSearch import UniformGrid
    from computationalFluids.FluidSim.sph.particles import FluidParticles


def _spreadBits(values: np.ndarray) -> np.ndarray:
    '''Insert two zero bits between each of the low 10 bits.'''
    x = values.astype(np.uint64) & np.uint64(0x3FF)
    x = (x | (x << np.uint64(16))) & np.uint64(0x030000FF)
    x = (x | (x << np.uint64(8))) & np.uint64(0x0300F00F)
    x = (x | (x << np.uint64(4))) & np.uint64(0x030C30C3)
    x = (x | (x << np.uint64(2))) & np.uint64(0x09249249)
    return x


def mortonKeys(gridCoords: np.ndarray) -> np.ndarray:
    '''
    Interleave integer cell coordinates into Morton keys.

    Bit k of x lands in bit 3k, of y in 3k + 1, of z in 3k + 2.
    Coordinates are clipped to [0, 2^10 - 1].

    Parameters:
    -----------
    gridCoords : np.ndarray
        Integer cell coordinates, shape (N, 3)

    Returns:
    --------
    np.ndarray : Keys, shape (N,), dtype uint64
    '''
    maxCoord = (1 << const.mortonBits) - 1
    coords = np.clip(np.asarray(gridCoords, dtype=np.int64), 0, maxCoord)
    return (
        _spreadBits(coords[:, 0])
        | (_spreadBits(coords[:, 1]) << np.uint64(1))
        | (_spreadBits(coords[:, 2]) << np.uint64(2))
    )


def mortonOrder(positions: np.ndarray, grid: UniformGrid) -> np.ndarray:
    '''
    Stable permutation sorting positions by Morton key.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions [m], shape (N, 3)
    grid : UniformGrid
        Grid defining the cell coordinates

    Returns:
    --------
    np.ndarray : Permutation of range(N)
    '''
    keys = mortonKeys(grid.worldToGrid(positions).reshape(-1, 3))
    return np.argsort(keys, kind='stable')


def resequence(particles: FluidParticles, grid: UniformGrid) -> np.ndarray:
    '''
    Reorder every fluid array in Z-order, in one whole-array swap.

    Returns:
    --------
    np.ndarray : The applied permutation
    '''
    order = mortonOrder(particles.positions, grid)
    particles.permute(order)
    return order
