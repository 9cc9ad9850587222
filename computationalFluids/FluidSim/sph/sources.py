# -- Particle Sources and Sinks -- #

'''
Particle emitters and removal hooks applied between time steps.

Sources only append particles; the sink hook runs after the sources
and may remove particles, which invalidates the neighbor lists until
the next rebuild.
'''

from __future__ import annotations

import numpy as np

from computationalFluids.FluidSim.scenarios.sampling import sampleDisk
from computationalFluids.FluidSim.sph.particles import FluidParticles
from computationalFluids.FluidSim.sph.protocols import ParticleBatch


class DiskParticleSource:
    '''
    Emits a disk of particles moving along the disk normal.

    A batch is emitted when the current time lies in
    [startTime, endTime] and at least `delay` has passed since the
    previous emission.

    Parameters:
    -----------
    centre : np.ndarray
        Disk centre [m], shape (3,)
    direction : np.ndarray
        Emission direction (disk normal), shape (3,)
    radius : float
        Disk radius [m]
    speed : float
        Emission speed along `direction` [m/s]
    spacing : float
        Particle spacing in the disk [m]
    startTime : float
        First time at which the source is active [s]
    endTime : float
        Last time at which the source is active [s]
    delay : float
        Minimum time between two emissions [s]
    '''

    def __init__(
        self,
        centre: np.ndarray,
        direction: np.ndarray,
        radius: float,
        speed: float,
        spacing: float,
        startTime: float = 0.0,
        endTime: float = float('inf'),
        delay: float = 0.0,
    ) -> None:
        direction = np.asarray(direction, dtype=float)
        length = np.linalg.norm(direction)
        if length == 0.0:
            raise ValueError('Source direction must be non-zero')
        if endTime < startTime:
            raise ValueError(f'Source endTime ({endTime}) is before startTime ({startTime})')

        self._direction = direction / length
        self._speed = speed
        self._startTime = startTime
        self._endTime = endTime
        self._delay = delay
        self._lastEmission: float | None = None
        self._template = sampleDisk(centre, self._direction, radius, spacing)

    @property
    def particlesPerEmission(self) -> int:
        '''Number of particles in one emitted disk.'''
        return self._template.shape[0]

    def isActive(self, currentTime: float) -> bool:
        '''True when the source emits at `currentTime`.'''
        if not self._startTime <= currentTime <= self._endTime:
            return False
        if self._lastEmission is None:
            return True
        return currentTime - self._lastEmission >= self._delay

    def apply(self, currentTime: float) -> ParticleBatch:
        '''
        Emit a batch if the source is active.

        Parameters:
        -----------
        currentTime : float
            Simulation time [s]

        Returns:
        --------
        ParticleBatch : Emitted particles, possibly empty
        '''
        if not self.isActive(currentTime):
            return ParticleBatch.empty()

        self._lastEmission = currentTime
        n = self._template.shape[0]
        velocities = np.tile(self._speed * self._direction, (n, 1))
        return ParticleBatch(positions=self._template.copy(), velocities=velocities)


class InertParticleSink:
    '''Sink hook that removes nothing.'''

    def apply(self, particles: FluidParticles, currentTime: float) -> None:
        return None
