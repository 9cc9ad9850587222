# -- State Exporter Tests -- #

from __future__ import annotations

import json
import os

import numpy as np

from computationalFluids.FluidSim.export.stateExporter import StateExporter
from computationalFluids.FluidSim.sph.protocols import StateSnapshot


def _snapshot(time: float, n: int = 5) -> StateSnapshot:
    rng = np.random.default_rng(7)
    return StateSnapshot(
        time=time,
        positions=rng.uniform(-1.0, 1.0, size=(n, 3)),
        velocities=rng.normal(size=(n, 3)),
        densities=1000.0 + rng.normal(size=n),
        masses=np.full(n, 0.125),
    )


def testExportWritesOneFilePerField(tmp_path):
    exporter = StateExporter(str(tmp_path / 'out'))
    snapshot = _snapshot(0.0)

    index = exporter.exportState(snapshot)

    assert index == 0
    assert exporter.nStates == 1
    for fieldName in ('position', 'velocity', 'density', 'mass'):
        path = exporter.fieldPath(fieldName, 0)
        assert os.path.isfile(path)
        assert path.endswith(os.path.join(fieldName, f'{fieldName}00000.txt'))


def testExportedValuesReload(tmp_path):
    exporter = StateExporter(str(tmp_path))
    snapshot = _snapshot(0.5)
    exporter.exportState(snapshot)

    positions = np.loadtxt(exporter.fieldPath('position', 0))
    densities = np.loadtxt(exporter.fieldPath('density', 0))

    assert np.allclose(positions, snapshot.positions, rtol=1e-14, atol=0.0)
    assert np.allclose(densities, snapshot.densities, rtol=1e-14, atol=0.0)


def testIndicesIncrement(tmp_path):
    exporter = StateExporter(str(tmp_path))
    indices = [exporter.exportState(_snapshot(0.016 * k)) for k in range(3)]

    assert indices == [0, 1, 2]
    assert os.path.isfile(exporter.fieldPath('velocity', 2))


def testMetadataRecordsConfigAndTimes(tmp_path, config):
    exporter = StateExporter(str(tmp_path))
    exporter.exportState(_snapshot(0.0))
    exporter.exportState(_snapshot(0.016))

    path = exporter.writeMetadata(config, scenarioName='restingCluster')
    with open(path, 'r') as f:
        metadata = json.load(f)

    assert metadata['meta']['scenario'] == 'restingCluster'
    assert metadata['meta']['nStates'] == 2
    assert metadata['times'] == [0.0, 0.016]
    assert metadata['config']['particleCount'] == config.fluid.particleCount
    assert metadata['config']['gravity'] == [0.0, -9.81, 0.0]
