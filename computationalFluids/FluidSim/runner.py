# -- Fluid Simulation Runner -- #

'''
Command-line entry point for running IISPH fluid simulations.

Sets up a scenario (cube in a box or dam break), runs the solver with a
progress bar, prints a run summary, and optionally exports the states.

Usage:
    python -m computationalFluids.FluidSim                                     # Standard cube in a box
    python -m computationalFluids.FluidSim --preset small                      # Quick run
    python -m computationalFluids.FluidSim --preset zeroGravity                # Weightless cube
    python -m computationalFluids.FluidSim --preset damBreak                   # Collapsing column
    python -m computationalFluids.FluidSim --config configs/cubeInBox.json
    python -m computationalFluids.FluidSim --formulation weaklyCompressible
    python -m computationalFluids.FluidSim --no-export                         # Skip state export
'''

from __future__ import annotations

import argparse
import dataclasses
import json
import time as timeModule
import warnings

from tqdm import tqdm

from computationalFluids.FluidSim.export.stateExporter import StateExporter
from computationalFluids.FluidSim.scenarios.cubeInBox import CubeInBoxConfig, createCubeInBox
from computationalFluids.FluidSim.scenarios.damBreak import DamBreakConfig, createDamBreak
from computationalFluids.FluidSim.sph.iisphSolver import FluidSolver
from computationalFluids.FluidSim.sph.particles import BoundaryParticles, FluidParticles
from computationalFluids.FluidSim.sph.protocols import SimulationConfig, pressureFormulations


_presets = {
    'small': CubeInBoxConfig.small,
    'standard': CubeInBoxConfig.standard,
    'dropOnFloor': CubeInBoxConfig.dropOnFloor,
    'zeroGravity': CubeInBoxConfig.zeroGravity,
    'damBreak': DamBreakConfig.standard,
}


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='FluidSim -- IISPH fluid simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file (cube in a box)',
    )
    parser.add_argument(
        '--preset', type=str, default='standard',
        choices=sorted(_presets),
        help='Scenario preset (default: standard)',
    )
    parser.add_argument(
        '--end-time', type=float, default=None,
        help='Override the simulation end time [s]',
    )
    parser.add_argument(
        '--formulation', type=str, default=None,
        choices=list(pressureFormulations),
        help='Pressure formulation (default: implicitIncompressible)',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip state export',
    )
    parser.add_argument(
        '--export-dir', type=str, default='computationalFluids/FluidSim/output',
        help='Output directory for exported states (default: FluidSim/output)',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class FluidSimRunner:
    '''
    Runs a fluid simulation and stores results.

    Handles the full pipeline: scenario setup, simulation loop with
    progress reporting, and optional state export.
    '''

    def __init__(self) -> None:
        self._exporter: StateExporter | None = None

    def runFromConfig(
        self,
        configPath: str,
        doExport: bool = True,
        exportDir: str = 'computationalFluids/FluidSim/output',
        endTime: float | None = None,
        pressureFormulation: str | None = None,
    ) -> dict:
        '''
        Run the cube in a box scenario from a JSON configuration file.

        The 'scenario' section sets the geometry (boxScale, elevation,
        boundaryLayers); the remaining sections are read by
        SimulationConfig.fromJson.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file
        doExport : bool
            Whether to export states
        exportDir : str
            Output directory for state export
        endTime : float | None
            Replaces the end time of the file when given [s]
        pressureFormulation : str | None
            Replaces the pressure formulation of the file when given

        Returns:
        --------
        dict : Simulation results summary
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        fileConfig = SimulationConfig.fromJson(configPath)
        if endTime is not None:
            fileConfig.endTime = endTime
        if pressureFormulation is not None:
            fileConfig.solver.pressureFormulation = pressureFormulation
        scenarioSection = data.get('scenario', {})

        scenario = CubeInBoxConfig(
            particleCount=fileConfig.fluid.particleCount,
            volume=fileConfig.fluid.volume,
            boxScale=scenarioSection.get('boxScale', 4.0),
            elevation=scenarioSection.get('elevation', 0.5),
            boundaryLayers=scenarioSection.get('boundaryLayers', 1),
            timeStep=fileConfig.solver.timeStep,
            endTime=fileConfig.endTime,
            outputInterval=fileConfig.outputInterval,
            pressureFormulation=fileConfig.solver.pressureFormulation,
        )

        return self.runCubeInBox(
            scenario, doExport=doExport, exportDir=exportDir, fileConfig=fileConfig,
        )

    def runCubeInBox(
        self,
        scenario: CubeInBoxConfig,
        doExport: bool = True,
        exportDir: str = 'computationalFluids/FluidSim/output',
        fileConfig: SimulationConfig | None = None,
    ) -> dict:
        '''
        Run a cube in a box simulation.

        Parameters:
        -----------
        scenario : CubeInBoxConfig
            Scenario configuration
        doExport : bool
            Whether to export states
        exportDir : str
            Output directory for state export
        fileConfig : SimulationConfig | None
            Configuration loaded from a file; its fluid, boundary and
            solver parameters replace the scenario defaults

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print('  FLUIDSIM -- IISPH CUBE IN A BOX')
        print('=' * 62)
        print()

        simConfig, particles, boundaries = createCubeInBox(scenario)
        if fileConfig is not None:
            # The lattice fixes the particle count
            simConfig = dataclasses.replace(
                fileConfig,
                fluid=dataclasses.replace(fileConfig.fluid, particleCount=particles.nParticles),
            )
            particles.masses[:] = simConfig.fluid.mass

        geometry = [
            f'  Box Scale:         {scenario.boxScale:8.2f}',
            f'  Elevation:         {scenario.elevation:8.2f}',
        ]
        return self._runSimulation(
            simConfig, particles, boundaries, 'cubeInBox', geometry, doExport, exportDir,
        )

    def runDamBreak(
        self,
        scenario: DamBreakConfig,
        doExport: bool = True,
        exportDir: str = 'computationalFluids/FluidSim/output',
    ) -> dict:
        '''
        Run a dam break simulation.

        Parameters:
        -----------
        scenario : DamBreakConfig
            Scenario configuration
        doExport : bool
            Whether to export states
        exportDir : str
            Output directory for state export

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print('  FLUIDSIM -- IISPH DAM BREAK')
        print('=' * 62)
        print()

        simConfig, particles, boundaries = createDamBreak(scenario)

        fluidSize = ' x '.join(f'{v:.2f}' for v in scenario.fluidSize)
        tankSize = ' x '.join(f'{v:.2f}' for v in scenario.tankSize)
        geometry = [
            f'  Fluid Column:      {fluidSize} m',
            f'  Tank:              {tankSize} m',
        ]
        return self._runSimulation(
            simConfig, particles, boundaries, 'damBreak', geometry, doExport, exportDir,
        )

    def _runSimulation(
        self,
        simConfig: SimulationConfig,
        particles: FluidParticles,
        boundaries: BoundaryParticles,
        scenarioName: str,
        geometryLines: list[str],
        doExport: bool,
        exportDir: str,
    ) -> dict:
        #--------------------------------------------------------------------#
        # Scenario Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENARIO SETUP')
        print('-' * 62)

        print(f'  Fluid Volume:      {simConfig.fluid.volume:8.3f} m^3')
        for line in geometryLines:
            print(line)
        print(f'  Particle Mass:     {simConfig.fluid.mass:8.4f} kg')
        print(f'  Smoothing Radius:  {simConfig.smoothingRadius:8.4f} m')
        print(f'  Fluid Particles:   {particles.nParticles:8d}')
        print(f'  Boundary Particles:{boundaries.nParticles:8d}')
        print(f'  Time Step:         {simConfig.solver.timeStep:8.4f} s')
        print(f'  End Time:          {simConfig.endTime:8.2f} s')
        print()

        #--------------------------------------------------------------------#
        # Initialize Solver
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  INITIALIZING SOLVER')
        print('-' * 62)

        solver = FluidSolver(config=simConfig)
        solver.initialize(particles, boundaries)

        print(f'  Formulation:       {simConfig.solver.pressureFormulation}')
        print(f'  Speed of Sound:    {simConfig.fluid.soundSpeed:8.2f} m/s')
        print(f'  Initial Density:   {solver.currentState.meanDensity:8.2f} kg/m^3')
        print()

        self._exporter = StateExporter(exportDir) if doExport else None
        if self._exporter is not None:
            self._exporter.exportState(solver.snapshot())

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)

        dt = simConfig.solver.timeStep
        nSteps = max(int(round(simConfig.endTime / dt)), 0)
        nextOutputTime = simConfig.outputInterval
        nCapped = 0
        maxIterations = 0

        wallClockStart = timeModule.time()
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', RuntimeWarning)

            with tqdm(total=nSteps, desc='  Simulating', unit='step') as progress:
                for _ in range(nSteps):
                    state = solver.step()
                    if not state.solverConverged:
                        nCapped += 1
                    maxIterations = max(maxIterations, state.pressureIterations)

                    if self._exporter is not None and solver.time >= nextOutputTime:
                        self._exporter.exportState(solver.snapshot())
                        nextOutputTime += simConfig.outputInterval

                    progress.set_postfix(
                        rho=f'{state.meanDensity:.1f}',
                        iters=state.pressureIterations,
                        vmax=f'{state.maxVelocity:.3f}',
                    )
                    progress.update(1)

        wallClockSeconds = timeModule.time() - wallClockStart
        finalState = solver.currentState

        print()
        print(f'  Simulation complete.')
        print(f'  Total steps:       {finalState.step:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if self._exporter is not None:
            print('-' * 62)
            print('  EXPORTING STATE DATA')
            print('-' * 62)

            exportPath = self._exporter.writeMetadata(simConfig, scenarioName=scenarioName)
            print(f'  States exported:   {self._exporter.nStates:8d}')
            print(f'  Exported to: {exportPath}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Mean Density:      {finalState.meanDensity:10.3f} kg/m^3')
        print(f'  Fluctuation:       {finalState.densityFluctuation:10.3f} kg/m^3')
        print(f'  Real Volume:       {finalState.realVolume:10.4f} m^3')
        print(f'  Max Velocity:      {finalState.maxVelocity:10.4f} m/s')
        print(f'  Kinetic Energy:    {finalState.kineticEnergy:10.4f} J')
        print(f'  Max Iterations:    {maxIterations:10d}')
        print(f'  Capped Solves:     {nCapped:10d}')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nStates': self._exporter.nStates if self._exporter is not None else 0,
            'cappedSolves': nCapped,
            'exportPath': exportPath,
        }


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main() -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args()

    runner = FluidSimRunner()
    doExport = not args.no_export

    if args.config:
        runner.runFromConfig(
            args.config, doExport=doExport, exportDir=args.export_dir,
            endTime=args.end_time, pressureFormulation=args.formulation,
        )
        return

    scenario = _presets[args.preset]()
    if args.end_time is not None:
        scenario.endTime = args.end_time
    if args.formulation is not None:
        scenario.pressureFormulation = args.formulation

    if isinstance(scenario, DamBreakConfig):
        runner.runDamBreak(scenario, doExport=doExport, exportDir=args.export_dir)
    else:
        runner.runCubeInBox(scenario, doExport=doExport, exportDir=args.export_dir)


if __name__ == '__main__':
    main()
