# -- Particle Sampling Generators -- #

'''
Regular lattice samplers for fluid volumes and boundary surfaces.

All samplers return positions of shape (K, 3). Volume samplers place
particles at cell centres of a cubic lattice (half a spacing inside
the region); surface samplers place them on the lattice nodes of the
surface itself.
'''

from __future__ import annotations

import numpy as np


# Absorbs round-off when the extent is an exact multiple of the spacing
_countTolerance: float = 1e-6


def _latticeCounts(scale: np.ndarray, spacing: float) -> np.ndarray:
    return np.floor(np.asarray(scale, dtype=float) / spacing + _countTolerance).astype(np.int64)


def _latticeAxes(start: np.ndarray, counts: np.ndarray, spacing: float) -> list[np.ndarray]:
    return [start[d] + spacing * np.arange(counts[d]) for d in range(3)]


def _meshPoints(axes: list[np.ndarray]) -> np.ndarray:
    xx, yy, zz = np.meshgrid(axes[0], axes[1], axes[2], indexing='ij')
    return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])


def sampleBox(offset: np.ndarray, scale: np.ndarray, spacing: float) -> np.ndarray:
    '''
    Fill an axis-aligned box with a cubic lattice.

    floor(scale / spacing) particles are placed along each axis, the
    first one half a spacing from the lower corner.

    Parameters:
    -----------
    offset : np.ndarray
        Lower corner of the box [m], shape (3,)
    scale : np.ndarray
        Box edge lengths [m], shape (3,)
    spacing : float
        Lattice spacing [m]

    Returns:
    --------
    np.ndarray : Positions, shape (K, 3)
    '''
    if spacing <= 0.0:
        raise ValueError(f'Spacing must be positive, got {spacing}')

    offset = np.asarray(offset, dtype=float)
    counts = _latticeCounts(scale, spacing)
    if np.any(counts <= 0):
        return np.zeros((0, 3))
    return _meshPoints(_latticeAxes(offset + 0.5 * spacing, counts, spacing))


def sampleSphere(centre: np.ndarray, radius: float, spacing: float) -> np.ndarray:
    '''
    Fill a ball with a cubic lattice centred on the ball centre.

    Parameters:
    -----------
    centre : np.ndarray
        Ball centre [m], shape (3,)
    radius : float
        Ball radius [m]
    spacing : float
        Lattice spacing [m]

    Returns:
    --------
    np.ndarray : Positions, shape (K, 3)
    '''
    if spacing <= 0.0:
        raise ValueError(f'Spacing must be positive, got {spacing}')

    centre = np.asarray(centre, dtype=float)
    nHalf = int(np.floor(radius / spacing + _countTolerance))
    steps = spacing * np.arange(-nHalf, nHalf + 1)
    points = _meshPoints([centre[0] + steps, centre[1] + steps, centre[2] + steps])

    inside = np.sum((points - centre) ** 2, axis=1) <= radius * radius * (1.0 + _countTolerance)
    return points[inside]


def diskBasis(normal: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    '''
    Two unit vectors spanning the plane orthogonal to `normal`.

    Parameters:
    -----------
    normal : np.ndarray
        Plane normal, shape (3,), need not be unit length

    Returns:
    --------
    tuple[np.ndarray, np.ndarray] : (u, v), orthonormal and orthogonal to normal
    '''
    n = np.asarray(normal, dtype=float)
    length = np.linalg.norm(n)
    if length == 0.0:
        raise ValueError('Disk normal must be non-zero')
    n = n / length

    # Start from the axis least aligned with the normal
    helper = np.zeros(3)
    helper[int(np.argmin(np.abs(n)))] = 1.0
    u = np.cross(n, helper)
    u /= np.linalg.norm(u)
    v = np.cross(n, u)
    return u, v


def sampleDisk(centre: np.ndarray, normal: np.ndarray, radius: float, spacing: float) -> np.ndarray:
    '''
    Sample a flat disk with a square lattice in its plane.

    Parameters:
    -----------
    centre : np.ndarray
        Disk centre [m], shape (3,)
    normal : np.ndarray
        Disk normal, shape (3,)
    radius : float
        Disk radius [m]
    spacing : float
        Lattice spacing [m]

    Returns:
    --------
    np.ndarray : Positions, shape (K, 3)
    '''
    if spacing <= 0.0:
        raise ValueError(f'Spacing must be positive, got {spacing}')

    centre = np.asarray(centre, dtype=float)
    u, v = diskBasis(normal)

    nHalf = int(np.floor(radius / spacing + _countTolerance))
    steps = spacing * np.arange(-nHalf, nHalf + 1)
    a, b = np.meshgrid(steps, steps, indexing='ij')
    a = a.ravel()
    b = b.ravel()

    inside = a * a + b * b <= radius * radius * (1.0 + _countTolerance)
    a = a[inside]
    b = b[inside]
    return centre + a[:, np.newaxis] * u + b[:, np.newaxis] * v


def sampleBoxSurface(
    offset: np.ndarray,
    scale: np.ndarray,
    spacing: float,
    nLayers: int = 1,
) -> np.ndarray:
    '''
    Sample the six faces of an axis-aligned box.

    Layer k (k = 0 .. nLayers - 1) covers the box grown by k spacings
    on every side, so extra layers stack outwards. Edge and corner
    nodes appear once.

    Parameters:
    -----------
    offset : np.ndarray
        Lower corner of the innermost surface [m], shape (3,)
    scale : np.ndarray
        Edge lengths of the innermost surface [m], shape (3,)
    spacing : float
        Node spacing on the faces [m]
    nLayers : int
        Number of stacked layers

    Returns:
    --------
    np.ndarray : Positions, shape (K, 3)
    '''
    if spacing <= 0.0:
        raise ValueError(f'Spacing must be positive, got {spacing}')
    if nLayers < 1:
        raise ValueError(f'nLayers must be >= 1, got {nLayers}')

    offset = np.asarray(offset, dtype=float)
    scale = np.asarray(scale, dtype=float)
    baseCounts = _latticeCounts(scale, spacing)

    allPositions: list[np.ndarray] = []
    for layer in range(nLayers):
        counts = baseCounts + 2 * layer + 1
        start = offset - layer * spacing

        ii, jj, kk = np.meshgrid(
            np.arange(counts[0]), np.arange(counts[1]), np.arange(counts[2]), indexing='ij',
        )
        indices = np.column_stack([ii.ravel(), jj.ravel(), kk.ravel()])

        # Keep nodes lying on at least one face
        onFace = np.any((indices == 0) | (indices == counts - 1), axis=1)
        allPositions.append(start + spacing * indices[onFace])

    return np.vstack(allPositions)
