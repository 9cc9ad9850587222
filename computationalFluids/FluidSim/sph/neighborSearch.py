# -- Uniform Grid Neighbor Search -- #

'''
Uniform grid bucketing and fixed-radius neighbor search for SPH.

The grid covers the axis-aligned bounding box of all fluid and boundary
particles, padded by the kernel support 2h on every side, with cubic
cells of edge 2h. Each cell holds one bucket per population (fluid,
boundary). A query only visits the 3x3x3 block of cells around the
cell holding the query point.

Buckets are stored compactly: particle indices sorted by cell id plus
a start offset per cell, so a bucket is one slice. Neighbor lists use
the same compressed layout over (i, j) pairs.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA
'''

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


######################################################################
# -- Neighbor Lists -- #
######################################################################

@dataclass
class NeighborLists:
    '''
    Compressed neighbor lists for one (query, target) population pair.

    Pairs are sorted by (i, j). Neighbors of query particle i are
    pairJ[offsets[i]:offsets[i + 1]]. Separations and distances are
    taken at search time and stay valid until positions change.

    Parameters:
    -----------
    pairI : np.ndarray
        Query particle index per pair, shape (P,)
    pairJ : np.ndarray
        Target particle index per pair, shape (P,)
    offsets : np.ndarray
        Start of each query particle's pairs, shape (nQueries + 1,)
    separations : np.ndarray
        x_i - x_j per pair [m], shape (P, 3)
    distances : np.ndarray
        |x_i - x_j| per pair [m], shape (P,)
    '''

    pairI: np.ndarray
    pairJ: np.ndarray
    offsets: np.ndarray
    separations: np.ndarray
    distances: np.ndarray

    @property
    def nQueries(self) -> int:
        '''Number of query particles.'''
        return self.offsets.shape[0] - 1

    @property
    def nPairs(self) -> int:
        '''Total number of pairs.'''
        return self.pairI.shape[0]

    def neighborsOf(self, i: int) -> np.ndarray:
        '''Target indices of query particle i.'''
        return self.pairJ[self.offsets[i]:self.offsets[i + 1]]

    def counts(self) -> np.ndarray:
        '''Number of neighbors per query particle.'''
        return np.diff(self.offsets)

    @classmethod
    def fromPairs(
        cls,
        pairI: np.ndarray,
        pairJ: np.ndarray,
        queryPositions: np.ndarray,
        targetPositions: np.ndarray,
    ) -> NeighborLists:
        '''
        Sort raw pairs and attach their geometry.

        Parameters:
        -----------
        pairI : np.ndarray
            Query indices, shape (P,)
        pairJ : np.ndarray
            Target indices, shape (P,)
        queryPositions : np.ndarray
            Query particle positions, shape (N, 3)
        targetPositions : np.ndarray
            Target particle positions, shape (M, 3)

        Returns:
        --------
        NeighborLists : Sorted compressed lists
        '''
        pairI = np.asarray(pairI, dtype=np.int64)
        pairJ = np.asarray(pairJ, dtype=np.int64)
        order = np.lexsort((pairJ, pairI))
        pairI = pairI[order]
        pairJ = pairJ[order]

        nQueries = queryPositions.shape[0]
        offsets = np.zeros(nQueries + 1, dtype=np.int64)
        np.cumsum(np.bincount(pairI, minlength=nQueries), out=offsets[1:])

        separations = queryPositions[pairI] - targetPositions[pairJ]
        distances = np.sqrt(np.sum(separations * separations, axis=1))

        return cls(
            pairI=pairI,
            pairJ=pairJ,
            offsets=offsets,
            separations=separations,
            distances=distances,
        )

    @classmethod
    def empty(cls, nQueries: int) -> NeighborLists:
        '''Lists holding no pair.'''
        return cls(
            pairI=np.zeros(0, dtype=np.int64),
            pairJ=np.zeros(0, dtype=np.int64),
            offsets=np.zeros(nQueries + 1, dtype=np.int64),
            separations=np.zeros((0, 3)),
            distances=np.zeros(0),
        )


######################################################################
# -- Uniform Grid -- #
######################################################################

class _Buckets:
    '''Particle indices of one population grouped by cell.'''

    def __init__(self, cellIds: np.ndarray, nCells: int) -> None:
        inside = cellIds >= 0
        indices = np.nonzero(inside)[0]
        insideIds = cellIds[inside]

        order = np.argsort(insideIds, kind='stable')
        self.sortedIndices = indices[order]
        self.cellStart = np.zeros(nCells + 1, dtype=np.int64)
        np.cumsum(np.bincount(insideIds, minlength=nCells), out=self.cellStart[1:])

    def bucket(self, cellId: int) -> np.ndarray:
        return self.sortedIndices[self.cellStart[cellId]:self.cellStart[cellId + 1]]


class UniformGrid:
    '''
    Axis-aligned uniform grid with per-cell fluid and boundary buckets.

    Cell ids flatten integer cell coordinates (ix, iy, iz) as
    ix + nx * (iy + ny * iz). Points outside the grid map to -1 and are
    left out of every bucket.

    Parameters:
    -----------
    minCorner : np.ndarray
        Lower corner of the grid [m], shape (3,)
    maxCorner : np.ndarray
        Upper corner of the grid [m], shape (3,)
    cellSize : float
        Cell edge length [m]
    '''

    def __init__(self, minCorner: np.ndarray, maxCorner: np.ndarray, cellSize: float) -> None:
        self._fluidBuckets: _Buckets | None = None
        self._boundaryBuckets: _Buckets | None = None
        self.fluidPositions = np.zeros((0, 3))
        self.boundaryPositions = np.zeros((0, 3))
        self.update(minCorner, maxCorner, cellSize)

    @classmethod
    def fromPoints(cls, pointSets: Sequence[np.ndarray], h: float) -> UniformGrid:
        '''
        Size a grid from the extent of the given point sets.

        The bounding box is padded by 2h on every side and the cell
        edge is 2h.

        Parameters:
        -----------
        pointSets : Sequence[np.ndarray]
            Point arrays of shape (K, 3), empty arrays allowed
        h : float
            Smoothing radius [m]

        Returns:
        --------
        UniformGrid : Empty grid covering every point

        Raises:
        -------
        ValueError : If no point is given or a coordinate is not finite
        '''
        nonEmpty = [np.asarray(p, dtype=float).reshape(-1, 3) for p in pointSets]
        nonEmpty = [p for p in nonEmpty if p.shape[0] > 0]
        if not nonEmpty:
            raise ValueError('Cannot size the grid without any particle')

        points = np.concatenate(nonEmpty)
        if not np.all(np.isfinite(points)):
            raise ValueError('Cannot size the grid: particle positions are not finite')

        support = 2.0 * h
        return cls(points.min(axis=0) - support, points.max(axis=0) + support, support)

    def update(self, minCorner: np.ndarray, maxCorner: np.ndarray, cellSize: float) -> None:
        '''
        Resize the grid and drop all buckets.

        Parameters:
        -----------
        minCorner : np.ndarray
            Lower corner [m], shape (3,)
        maxCorner : np.ndarray
            Upper corner [m], shape (3,)
        cellSize : float
            Cell edge length [m]
        '''
        if cellSize <= 0.0:
            raise ValueError(f'Cell size must be positive, got {cellSize}')

        self.minCorner = np.asarray(minCorner, dtype=float).copy()
        self.maxCorner = np.asarray(maxCorner, dtype=float).copy()
        self.cellSize = float(cellSize)

        extent = np.maximum(self.maxCorner - self.minCorner, 0.0)
        self.dimensions = np.maximum(np.ceil(extent / self.cellSize).astype(np.int64), 1)
        self._fluidBuckets = None
        self._boundaryBuckets = None

    @property
    def nCells(self) -> int:
        '''Total number of cells.'''
        return int(np.prod(self.dimensions))

    def worldToGrid(self, x: np.ndarray) -> np.ndarray:
        '''
        Integer cell coordinates of one point or an array of points.

        Parameters:
        -----------
        x : np.ndarray
            Position(s) [m], shape (3,) or (K, 3)

        Returns:
        --------
        np.ndarray : Cell coordinates, same leading shape, dtype int64
        '''
        return np.floor((np.asarray(x, dtype=float) - self.minCorner) / self.cellSize).astype(np.int64)

    def _flatten(self, coords: np.ndarray) -> np.ndarray:
        nx, ny, _ = self.dimensions
        inside = np.all((coords >= 0) & (coords < self.dimensions), axis=-1)
        ids = coords[..., 0] + nx * (coords[..., 1] + ny * coords[..., 2])
        return np.where(inside, ids, -1)

    def cellId(self, x: np.ndarray) -> np.ndarray | int:
        '''
        Flattened cell id of one point or an array of points, -1 outside.

        Parameters:
        -----------
        x : np.ndarray
            Position(s) [m], shape (3,) or (K, 3)

        Returns:
        --------
        int | np.ndarray : Cell id(s)
        '''
        ids = self._flatten(self.worldToGrid(x))
        if np.ndim(ids) == 0:
            return int(ids)
        return ids

    def isInside(self, cellId: int) -> bool:
        '''True when the id names a cell of this grid.'''
        return 0 <= cellId < self.nCells

    def get27Neighbors(self, position: np.ndarray, radius: float) -> np.ndarray:
        '''
        Ids of the 3x3x3 block of cells around the cell holding a point.

        The block is clipped to the grid extents.

        Parameters:
        -----------
        position : np.ndarray
            Query position [m], shape (3,)
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        np.ndarray : Cell ids, empty if the point is outside the grid
        '''
        if radius > self.cellSize:
            raise ValueError(
                f'Search radius ({radius:.6g}) exceeds the cell size ({self.cellSize:.6g})'
            )

        centre = self.worldToGrid(position)
        if self._flatten(centre) < 0:
            return np.zeros(0, dtype=np.int64)

        coords = centre + _stencil27
        ids = self._flatten(coords)
        return ids[ids >= 0]

    def fill(self, fluidPositions: np.ndarray, boundaryPositions: np.ndarray) -> None:
        '''
        Rebuild the fluid and boundary buckets from scratch.

        Parameters:
        -----------
        fluidPositions : np.ndarray
            Fluid positions [m], shape (N, 3)
        boundaryPositions : np.ndarray
            Boundary positions [m], shape (M, 3)
        '''
        self.fluidPositions = np.asarray(fluidPositions, dtype=float).reshape(-1, 3)
        self.boundaryPositions = np.asarray(boundaryPositions, dtype=float).reshape(-1, 3)

        nCells = self.nCells
        self._fluidBuckets = _Buckets(self._flatten(self.worldToGrid(self.fluidPositions)), nCells)
        self._boundaryBuckets = _Buckets(self._flatten(self.worldToGrid(self.boundaryPositions)), nCells)

    def fluidBucket(self, cellId: int) -> np.ndarray:
        '''Fluid particle indices in a cell.'''
        return self._requireFilled(self._fluidBuckets).bucket(cellId)

    def boundaryBucket(self, cellId: int) -> np.ndarray:
        '''Boundary particle indices in a cell.'''
        return self._requireFilled(self._boundaryBuckets).bucket(cellId)

    @staticmethod
    def _requireFilled(buckets: _Buckets | None) -> _Buckets:
        if buckets is None:
            raise ValueError('Grid buckets are empty, call fill() first')
        return buckets


# Offsets of the 3x3x3 stencil, z slowest
_stencil27 = np.array(
    [(dx, dy, dz) for dz in (-1, 0, 1) for dy in (-1, 0, 1) for dx in (-1, 0, 1)],
    dtype=np.int64,
)


######################################################################
# -- Neighbor Search -- #
######################################################################

class NeighborSearch:
    '''
    Fixed-radius neighbor queries over a filled UniformGrid.

    The fluid neighbor list of a particle includes the particle itself.

    Parameters:
    -----------
    grid : UniformGrid
        Grid whose buckets were filled with the current positions
    '''

    def __init__(self, grid: UniformGrid) -> None:
        self._grid = grid

    def getNearestNeighbor(self, i: int, radius: float) -> tuple[np.ndarray, np.ndarray]:
        '''
        Fluid and boundary neighbors of fluid particle i.

        Parameters:
        -----------
        i : int
            Fluid particle index
        radius : float
            Search radius [m]

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] : (fluidIds, boundaryIds), sorted
        '''
        grid = self._grid
        position = grid.fluidPositions[i]
        radiusSq = radius * radius

        fluidIds = []
        boundaryIds = []
        for cell in grid.get27Neighbors(position, radius):
            fluidIds.append(grid.fluidBucket(cell))
            boundaryIds.append(grid.boundaryBucket(cell))

        return (
            self._withinRadius(position, grid.fluidPositions, fluidIds, radiusSq),
            self._withinRadius(position, grid.boundaryPositions, boundaryIds, radiusSq),
        )

    @staticmethod
    def _withinRadius(
        position: np.ndarray,
        targets: np.ndarray,
        chunks: list[np.ndarray],
        radiusSq: float,
    ) -> np.ndarray:
        if not chunks:
            return np.zeros(0, dtype=np.int64)
        candidates = np.concatenate(chunks)
        diff = targets[candidates] - position
        keep = np.sum(diff * diff, axis=1) < radiusSq
        return np.sort(candidates[keep])

    def findAll(self, radius: float) -> tuple[NeighborLists, NeighborLists]:
        '''
        Fluid and boundary neighbor lists of every fluid particle.

        Parameters:
        -----------
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        tuple[NeighborLists, NeighborLists] : (fluidNeighbors, boundaryNeighbors)
        '''
        grid = self._grid
        fluidNeighbors = self._searchPopulation(
            grid.fluidPositions, grid.fluidPositions, grid._requireFilled(grid._fluidBuckets), radius,
        )
        boundaryNeighbors = self._searchPopulation(
            grid.fluidPositions, grid.boundaryPositions, grid._requireFilled(grid._boundaryBuckets), radius,
        )
        return fluidNeighbors, boundaryNeighbors

    def boundaryNeighborsOfBoundary(self, radius: float) -> NeighborLists:
        '''
        Boundary neighbor lists of every boundary particle (self included).

        Parameters:
        -----------
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        NeighborLists : Boundary-boundary neighbor lists
        '''
        grid = self._grid
        return self._searchPopulation(
            grid.boundaryPositions, grid.boundaryPositions,
            grid._requireFilled(grid._boundaryBuckets), radius,
        )

    def _searchPopulation(
        self,
        queryPositions: np.ndarray,
        targetPositions: np.ndarray,
        buckets: _Buckets,
        radius: float,
    ) -> NeighborLists:
        '''
        Vectorized search over the 27 stencil offsets.

        For each offset, every query point gathers the whole bucket of
        the shifted cell, then candidates are filtered by distance.
        '''
        grid = self._grid
        if radius > grid.cellSize:
            raise ValueError(
                f'Search radius ({radius:.6g}) exceeds the cell size ({grid.cellSize:.6g})'
            )

        nQueries = queryPositions.shape[0]
        if nQueries == 0 or targetPositions.shape[0] == 0:
            return NeighborLists.empty(nQueries)

        radiusSq = radius * radius
        queryCoords = grid.worldToGrid(queryPositions)
        queryInside = grid._flatten(queryCoords) >= 0

        iChunks: list[np.ndarray] = []
        jChunks: list[np.ndarray] = []

        for offset in _stencil27:
            cellIds = grid._flatten(queryCoords + offset)
            active = np.nonzero(queryInside & (cellIds >= 0))[0]
            if active.size == 0:
                continue

            cells = cellIds[active]
            starts = buckets.cellStart[cells]
            counts = buckets.cellStart[cells + 1] - starts
            total = int(counts.sum())
            if total == 0:
                continue

            # Expand each query against every member of its shifted bucket
            candidateI = np.repeat(active, counts)
            firstSlot = np.repeat(np.cumsum(counts) - counts, counts)
            slots = np.repeat(starts, counts) + (np.arange(total) - firstSlot)
            candidateJ = buckets.sortedIndices[slots]

            diff = queryPositions[candidateI] - targetPositions[candidateJ]
            keep = np.sum(diff * diff, axis=1) < radiusSq
            iChunks.append(candidateI[keep])
            jChunks.append(candidateJ[keep])

        if not iChunks:
            return NeighborLists.empty(nQueries)

        return NeighborLists.fromPairs(
            np.concatenate(iChunks), np.concatenate(jChunks), queryPositions, targetPositions,
        )
