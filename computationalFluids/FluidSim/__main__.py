# -- FluidSim CLI -- #

'''Allows `python -m computationalFluids.FluidSim`.'''

from computationalFluids.FluidSim.runner import main


main()
