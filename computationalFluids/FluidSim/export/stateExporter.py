# -- Simulation State Exporter -- #

'''
Writes fluid states as per-field text files plus a JSON metadata file.

Layout under the base directory:

    position/position00000.txt    one "x y z" line per particle
    velocity/velocity00000.txt    one "vx vy vz" line per particle
    density/density00000.txt      one value per particle
    mass/mass00000.txt            one value per particle
    metadata.json                 configuration and exported times

Values are written with 16 significant digits.
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from computationalFluids.FluidSim.sph.protocols import SimulationConfig, StateSnapshot


_fields: tuple[str, ...] = ('position', 'velocity', 'density', 'mass')
_valueFormat: str = '%.16g'


class StateExporter:
    '''
    Exports simulation states to text files, one file per field.

    Usage:
        exporter = StateExporter('output')
        # During simulation loop:
        exporter.exportState(solver.snapshot())
        # After simulation:
        exporter.writeMetadata(config)

    Parameters:
    -----------
    baseDir : str
        Output directory, created on first export
    '''

    def __init__(self, baseDir: str) -> None:
        self._baseDir = baseDir
        self._times: list[float] = []

    @property
    def baseDir(self) -> str:
        return self._baseDir

    @property
    def nStates(self) -> int:
        '''Number of exported states.'''
        return len(self._times)

    def fieldPath(self, fieldName: str, index: int) -> str:
        '''Path of the file holding one field of state `index`.'''
        return os.path.join(self._baseDir, fieldName, f'{fieldName}{index:05d}.txt')

    def exportState(self, snapshot: StateSnapshot) -> int:
        '''
        Write one state.

        Parameters:
        -----------
        snapshot : StateSnapshot
            Particle fields to write

        Returns:
        --------
        int : Index of the written state
        '''
        index = len(self._times)
        values = {
            'position': snapshot.positions,
            'velocity': snapshot.velocities,
            'density': snapshot.densities,
            'mass': snapshot.masses,
        }

        for fieldName in _fields:
            os.makedirs(os.path.join(self._baseDir, fieldName), exist_ok=True)
            np.savetxt(self.fieldPath(fieldName, index), values[fieldName], fmt=_valueFormat)

        self._times.append(snapshot.time)
        return index

    def writeMetadata(self, config: SimulationConfig, scenarioName: str = 'cubeInBox') -> str:
        '''
        Write the run metadata next to the exported states.

        Parameters:
        -----------
        config : SimulationConfig
            Simulation configuration
        scenarioName : str
            Scenario name recorded in the metadata

        Returns:
        --------
        str : Path to metadata.json
        '''
        os.makedirs(self._baseDir, exist_ok=True)
        filepath = os.path.join(self._baseDir, 'metadata.json')

        output = {
            'meta': {
                'type': 'fluidSim',
                'scenario': scenarioName,
                'nStates': len(self._times),
                'created': datetime.now().isoformat(),
            },
            'config': {
                'particleCount': config.fluid.particleCount,
                'volume': config.fluid.volume,
                'mass': config.fluid.mass,
                'restDensity': config.fluid.restDensity,
                'smoothingRadius': config.smoothingRadius,
                'soundSpeed': config.fluid.soundSpeed,
                'viscosity': config.fluid.viscosity,
                'cohesion': config.fluid.cohesion,
                'boundarySmoothingRadius': config.boundary.smoothingRadius,
                'boundaryFriction': config.boundary.friction,
                'boundaryAdhesion': config.boundary.adhesion,
                'timeStep': config.solver.timeStep,
                'pressureFormulation': config.solver.pressureFormulation,
                'gravity': np.asarray(config.gravity, dtype=float).tolist(),
                'endTime': config.endTime,
                'outputInterval': config.outputInterval,
            },
            'times': [round(t, 6) for t in self._times],
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=2)

        return filepath
