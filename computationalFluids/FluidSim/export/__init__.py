# -- Export Package -- #

'''
Data export utilities for fluid simulation results.

Writes per-field text files for each exported state plus a JSON
metadata file describing the run.
'''

from computationalFluids.FluidSim.export.stateExporter import StateExporter
