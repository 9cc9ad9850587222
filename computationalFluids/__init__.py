# -- Computational Fluids Package -- #

'''
Master package for the Computational Fluids toolkit.

Domain-specific sub-packages:
    - FluidSim: IISPH fluid simulation with static rigid boundaries
'''
