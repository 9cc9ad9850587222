# -- Runner Tests -- #

from __future__ import annotations

import json
import os

from computationalFluids.FluidSim.runner import FluidSimRunner, buildParser
from computationalFluids.FluidSim.scenarios.cubeInBox import CubeInBoxConfig
from computationalFluids.FluidSim.scenarios.damBreak import DamBreakConfig


def testRunCubeInBoxExportsStates(tmp_path):
    scenario = CubeInBoxConfig.small()
    scenario.endTime = 0.02

    results = FluidSimRunner().runCubeInBox(scenario, doExport=True, exportDir=str(tmp_path))

    assert results['finalState'].step == 5
    assert results['finalState'].nParticles == 343
    assert results['nStates'] == 2
    assert os.path.isfile(results['exportPath'])
    assert os.path.isfile(os.path.join(str(tmp_path), 'position', 'position00001.txt'))


def testRunFromConfigUsesLatticeCount(tmp_path):
    configPath = tmp_path / 'config.json'
    configPath.write_text(json.dumps({
        'fluid': {'particleCount': 350, 'volume': 0.343},
        'solver': {'timeStep': 0.004},
        'simulation': {'endTime': 0.008},
        'scenario': {'boxScale': 3.0},
    }))

    results = FluidSimRunner().runFromConfig(str(configPath), doExport=False)

    assert results['finalState'].nParticles == 343
    assert results['finalState'].step == 2
    assert results['nStates'] == 0
    assert results['exportPath'] is None


def testRunFromConfigAppliesOverrides(tmp_path):
    configPath = tmp_path / 'config.json'
    configPath.write_text(json.dumps({
        'fluid': {'particleCount': 350, 'volume': 0.343},
        'solver': {'timeStep': 0.004},
        'simulation': {'endTime': 1.0},
        'scenario': {'boxScale': 3.0},
    }))

    results = FluidSimRunner().runFromConfig(
        str(configPath), doExport=False, endTime=0.004, pressureFormulation='weaklyCompressible',
    )

    assert results['finalState'].step == 1
    assert results['finalState'].pressureIterations == 0


def testRunDamBreakExportsStates(tmp_path):
    scenario = DamBreakConfig(
        fluidSize=(0.5, 1.0, 0.3), tankSize=(1.0, 1.2, 0.3), spacing=0.1, endTime=0.02,
    )

    results = FluidSimRunner().runDamBreak(scenario, doExport=True, exportDir=str(tmp_path))

    assert results['finalState'].step == 10
    assert results['finalState'].nParticles == 150
    assert results['finalState'].kineticEnergy > 0.0
    assert results['nStates'] == 2
    with open(results['exportPath'], 'r') as f:
        assert json.load(f)['meta']['scenario'] == 'damBreak'


def testParserDefaults():
    args = buildParser().parse_args([])
    assert args.preset == 'standard'
    assert args.config is None
    assert not args.no_export

    args = buildParser().parse_args(['--preset', 'small', '--formulation', 'weaklyCompressible', '--no-export'])
    assert args.preset == 'small'
    assert args.formulation == 'weaklyCompressible'
    assert args.no_export

    args = buildParser().parse_args(['--preset', 'damBreak', '--end-time', '0.1'])
    assert args.preset == 'damBreak'
    assert args.end_time == 0.1

    args = buildParser().parse_args(['--preset', 'zeroGravity'])
    assert args.preset == 'zeroGravity'
