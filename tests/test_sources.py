# -- Sources and Sampling Tests -- #

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.FluidSim.scenarios.sampling import (
    diskBasis,
    sampleBox,
    sampleBoxSurface,
    sampleDisk,
    sampleSphere,
)
from computationalFluids.FluidSim.sph.particles import FluidParticles
from computationalFluids.FluidSim.sph.sources import DiskParticleSource, InertParticleSink


######################################################################
# -- Samplers -- #
######################################################################

def testSampleBoxCountsAndOffset():
    positions = sampleBox(np.zeros(3), np.ones(3), 0.1)
    assert positions.shape == (1000, 3)
    assert np.allclose(positions.min(axis=0), 0.05)
    assert np.allclose(positions.max(axis=0), 0.95)


def testSampleBoxAnisotropic():
    positions = sampleBox(np.array([1.0, 2.0, 3.0]), np.array([0.4, 0.2, 0.1]), 0.1)
    assert positions.shape == (4 * 2 * 1, 3)
    assert np.allclose(positions[:, 2], 3.05)


def testSampleBoxSurfaceCounts():
    positions = sampleBoxSurface(np.zeros(3), np.full(3, 4.0), 0.1)
    assert positions.shape[0] == 41 ** 3 - 39 ** 3
    # Nodes lie on the faces of [0, 4]^3
    onFace = np.any(np.isclose(positions, 0.0) | np.isclose(positions, 4.0), axis=1)
    assert onFace.all()


def testSampleBoxSurfaceLayersStackOutwards():
    single = sampleBoxSurface(np.zeros(3), np.ones(3), 0.25)
    double = sampleBoxSurface(np.zeros(3), np.ones(3), 0.25, nLayers=2)
    assert double.shape[0] == single.shape[0] + 7 ** 3 - 5 ** 3
    assert np.allclose(double.min(axis=0), -0.25)
    assert np.allclose(double.max(axis=0), 1.25)


def testSampleSphereIsInsideAndSymmetric():
    centre = np.array([1.0, 1.0, 1.0])
    positions = sampleSphere(centre, 0.3, 0.1)
    distances = np.linalg.norm(positions - centre, axis=1)
    assert np.all(distances <= 0.3 + 1e-9)
    assert np.allclose(positions.mean(axis=0), centre)
    assert any(np.allclose(p, centre) for p in positions)


def testDiskBasisIsOrthonormal():
    for normal in ([0.0, 1.0, 0.0], [1.0, 2.0, 3.0], [0.0, 0.0, -5.0]):
        n = np.asarray(normal) / np.linalg.norm(normal)
        u, v = diskBasis(normal)
        assert np.dot(u, u) == pytest.approx(1.0)
        assert np.dot(v, v) == pytest.approx(1.0)
        assert np.dot(u, v) == pytest.approx(0.0, abs=1e-12)
        assert np.dot(u, n) == pytest.approx(0.0, abs=1e-12)
        assert np.dot(v, n) == pytest.approx(0.0, abs=1e-12)


def testSampleDiskLiesInPlane():
    centre = np.array([0.5, 0.2, -0.1])
    normal = np.array([1.0, 1.0, 0.0])
    positions = sampleDisk(centre, normal, 0.2, 0.05)

    offsets = positions - centre
    assert np.allclose(offsets @ (normal / np.linalg.norm(normal)), 0.0)
    assert np.all(np.linalg.norm(offsets, axis=1) <= 0.2 + 1e-9)
    assert positions.shape[0] > 40


def testSamplersRejectBadSpacing():
    with pytest.raises(ValueError):
        sampleBox(np.zeros(3), np.ones(3), 0.0)
    with pytest.raises(ValueError):
        sampleSphere(np.zeros(3), 1.0, -0.1)
    with pytest.raises(ValueError):
        sampleDisk(np.zeros(3), np.array([0.0, 1.0, 0.0]), 1.0, 0.0)
    with pytest.raises(ValueError):
        sampleBoxSurface(np.zeros(3), np.ones(3), 0.1, nLayers=0)
    with pytest.raises(ValueError):
        diskBasis(np.zeros(3))


######################################################################
# -- Disk Source -- #
######################################################################

def _source(**kwargs) -> DiskParticleSource:
    params = dict(
        centre=np.zeros(3),
        direction=np.array([0.0, 0.0, 2.0]),
        radius=0.1,
        speed=1.5,
        spacing=0.05,
    )
    params.update(kwargs)
    return DiskParticleSource(**params)


def testSourceEmitsAlongDirection():
    source = _source()
    batch = source.apply(0.0)

    assert len(batch) == source.particlesPerEmission
    assert np.allclose(batch.velocities, [0.0, 0.0, 1.5])
    assert np.allclose(batch.positions[:, 2], 0.0)


def testSourceRespectsActiveWindow():
    source = _source(startTime=0.1, endTime=0.2)
    assert len(source.apply(0.05)) == 0
    assert len(source.apply(0.15)) > 0
    assert len(source.apply(0.25)) == 0


def testSourceRespectsDelay():
    source = _source(delay=0.01)
    assert len(source.apply(0.0)) > 0
    assert len(source.apply(0.004)) == 0
    assert len(source.apply(0.0125)) > 0
    assert len(source.apply(0.015)) == 0


def testSourceBatchesAreIndependentCopies():
    source = _source()
    first = source.apply(0.0)
    first.positions[:] = 99.0
    second = source.apply(0.004)
    assert not np.allclose(second.positions, 99.0)


def testSourceRejectsBadArguments():
    with pytest.raises(ValueError):
        _source(direction=np.zeros(3))
    with pytest.raises(ValueError):
        _source(startTime=1.0, endTime=0.5)


def testInertSinkRemovesNothing():
    particles = FluidParticles.fromPositions(np.zeros((4, 3)), mass=1.0)
    InertParticleSink().apply(particles, 0.0)
    assert particles.nParticles == 4
