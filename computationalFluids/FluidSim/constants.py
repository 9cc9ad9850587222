# -- Physical Constants for IISPH Fluid Simulation -- #

'''
Physical and numerical constants for the implicit incompressible
SPH fluid simulation. All values in SI units unless otherwise noted.

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Ihmsen et al. (2014) -- Implicit Incompressible SPH
Akinci et al. (2012) -- Versatile Rigid-Fluid Coupling for Incompressible SPH
Akinci et al. (2013) -- Versatile Surface Tension and Adhesion for SPH Fluids
'''

#--------------------------------------------------------------------#
# -- Fluid Properties -- #
#--------------------------------------------------------------------#

# Reference fluid density (water) [kg/m^3]
restDensity: float = 1000.0

# Gravitational acceleration magnitude [m/s^2], applied along -y
gravity: float = 9.81

# Artificial viscosity coefficient (alpha)
viscosity: float = 0.1

# Akinci cohesion coefficient (gamma)
cohesion: float = 0.05

#--------------------------------------------------------------------#
# -- Boundary Properties -- #
#--------------------------------------------------------------------#

# Boundary friction coefficient (sigma in the Akinci friction term)
boundaryFriction: float = 0.001

# Boundary adhesion coefficient (beta)
boundaryAdhesion: float = 0.001

# Boundary smoothing radius as a fraction of the fluid smoothing radius.
# Must stay <= 1 so the fluid neighbor radius covers boundary support.
boundarySmoothingRatio: float = 0.5

#--------------------------------------------------------------------#
# -- SPH Numerical Parameters -- #
#--------------------------------------------------------------------#

# Expected number of particles inside one smoothing sphere.
# h = 0.5 * (3 * V * particlePerCell / (4 * pi * N))^(1/3)
particlePerCell: float = 33.8

# Speed of sound: c = sqrt(2 * g * referenceHeight) / sqrt(maxCompression)
# Fluid column height used to bound the free-fall velocity [m]
referenceHeight: float = 0.1

# Tolerated relative compression for the speed of sound estimate
maxCompression: float = 0.01

# Tait equation of state exponent (weakly compressible formulation)
gamma: float = 7.0

# Viscosity singularity guard: |x|^2 + viscosityEpsilon * h^2
viscosityEpsilon: float = 0.01

# Squared normal length above which a particle is flagged as surface
surfaceThreshold: float = 0.05

#--------------------------------------------------------------------#
# -- Pressure Solver Parameters -- #
#--------------------------------------------------------------------#

# Default time step [s]
timeStep: float = 0.004

# Relaxation factor for the damped Jacobi pressure update (omega)
relaxation: float = 0.5

# Warm-start factor applied to the previous step's pressure
warmStartFactor: float = 0.5

# Iteration floor for the pressure solve
minIterations: int = 2

# Safety cap on pressure iterations
maxIterations: int = 100

# Tolerated mean density error [kg/m^3]
maxDensityError: float = 1.0

#--------------------------------------------------------------------#
# -- Neighbor Search -- #
#--------------------------------------------------------------------#

# Steps between Morton (Z-order) resequencing of the particle arrays
mortonInterval: int = 100

# Bits per axis in the Morton key
mortonBits: int = 10

# Distances below this are treated as zero separation [m]
distanceEpsilon: float = 1e-12
