# -- Kernel Tests -- #

'''
Value, gradient and support checks for the SPH kernels.
'''

from __future__ import annotations

import math

import numpy as np
import pytest

from computationalFluids.FluidSim.sph.kernels import AkinciKernel, BoundaryKernel, MonaghanKernel


h = 0.1


def testMonaghanValueAtZero():
    kernel = MonaghanKernel(h)
    assert kernel.value(0.0) == pytest.approx(1.0 / (math.pi * h ** 3))


def testMonaghanCompactSupport():
    kernel = MonaghanKernel(h)
    assert kernel.value(2.0 * h) == 0.0
    assert kernel.value(2.5 * h) == 0.0
    assert kernel.gradientMagnitude(2.0 * h) == 0.0
    assert kernel.value(1.99 * h) > 0.0


def testMonaghanNormalisation():
    kernel = MonaghanKernel(h)
    nSamples = 20000
    dr = 2.0 * h / nSamples
    r = (np.arange(nSamples) + 0.5) * dr
    integral = np.sum(4.0 * math.pi * r * r * kernel.valueBatch(r)) * dr
    assert integral == pytest.approx(1.0, rel=1e-4)


def testMonaghanContinuousAtQEqualsOne():
    kernel = MonaghanKernel(h)
    assert kernel.value(h * (1.0 - 1e-9)) == pytest.approx(kernel.value(h * (1.0 + 1e-9)), rel=1e-6)


def testGradientMatchesFiniteDifference():
    kernel = MonaghanKernel(h)
    eps = 1e-7
    for r in (0.3 * h, 0.9 * h, 1.2 * h, 1.8 * h):
        numerical = (kernel.value(r + eps) - kernel.value(r - eps)) / (2.0 * eps)
        assert kernel.gradientMagnitude(r) == pytest.approx(numerical, rel=1e-5)


def testGradientZeroForCoincidentParticles():
    kernel = MonaghanKernel(h)
    assert np.array_equal(kernel.gradient(np.zeros(3)), np.zeros(3))

    batch = kernel.gradientBatch(np.zeros((2, 3)), np.zeros(2))
    assert np.array_equal(batch, np.zeros((2, 3)))


def testGradientIsAntisymmetric():
    kernel = MonaghanKernel(h)
    rVec = np.array([0.03, -0.05, 0.02])
    assert np.allclose(kernel.gradient(rVec), -kernel.gradient(-rVec))
    # Points from j towards i with a negative slope, i.e. towards j
    assert np.dot(kernel.gradient(rVec), rVec) < 0.0


def testBatchMatchesScalar(rng):
    kernel = MonaghanKernel(h)
    rVecs = rng.uniform(-2.0 * h, 2.0 * h, size=(50, 3))
    distances = np.linalg.norm(rVecs, axis=1)

    values = kernel.valueBatch(distances)
    gradients = kernel.gradientBatch(rVecs, distances)
    for k in range(50):
        assert values[k] == pytest.approx(kernel.value(distances[k]))
        assert np.allclose(gradients[k], kernel.gradient(rVecs[k]))


def testAkinciCohesionContinuousAtHalfSupport():
    c = 2.0 * h
    kernel = AkinciKernel(c)
    below = kernel.cohesionValue(0.5 * c)
    above = kernel.cohesionValue(0.5 * c * (1.0 + 1e-9))
    assert below == pytest.approx(above, rel=1e-6)


def testAkinciCohesionShape():
    c = 2.0 * h
    kernel = AkinciKernel(c)
    # Repulsive core, attractive shell, nothing beyond the support
    assert kernel.cohesionValue(0.05 * c) < 0.0
    assert kernel.cohesionValue(0.75 * c) > 0.0
    assert kernel.cohesionValue(1.01 * c) == 0.0
    assert kernel.cohesionValue(0.0) == 0.0


def testAkinciAdhesionSupport():
    c = 2.0 * h
    kernel = AkinciKernel(c)
    assert kernel.adhesionValue(0.25 * c) == 0.0
    assert kernel.adhesionValue(0.5 * c) == 0.0
    assert kernel.adhesionValue(0.75 * c) > 0.0
    assert kernel.adhesionValue(1.2 * c) == 0.0


def testAkinciBatchMatchesScalar():
    c = 2.0 * h
    kernel = AkinciKernel(c)
    distances = np.linspace(0.0, 1.2 * c, 37)
    cohesion = kernel.cohesionBatch(distances)
    adhesion = kernel.adhesionBatch(distances)
    for k, r in enumerate(distances):
        assert cohesion[k] == pytest.approx(kernel.cohesionValue(r), abs=1e-12)
        assert adhesion[k] == pytest.approx(kernel.adhesionValue(r), abs=1e-12)


def testBoundaryKernelProfile():
    soundSpeed = 10.0
    kernel = BoundaryKernel(h, soundSpeed)
    factor = 0.02 * soundSpeed ** 2

    r = 0.5 * h
    assert kernel.value(r) == pytest.approx(factor * (2.0 / 3.0) / r)

    r = 1.5 * h
    assert kernel.value(r) == pytest.approx(factor * 0.5 * (2.0 - 1.5) ** 2 / r)

    assert kernel.value(2.0 * h) == 0.0
    assert kernel.value(0.0) == 0.0


def testBoundaryKernelBatchMatchesScalar():
    kernel = BoundaryKernel(h, 10.0)
    distances = np.linspace(0.0, 2.5 * h, 26)
    values = kernel.valueBatch(distances)
    for k, r in enumerate(distances):
        assert values[k] == pytest.approx(kernel.value(r))
