# -- SPH Time Integration -- #

'''
Semi-implicit (symplectic) Euler integration of the fluid particles.

The velocity is first predicted from the non-pressure forces by the
pressure solver (v_adv), then corrected by the pressure force. The
position drift uses the corrected velocity.

References:
-----------
Ihmsen et al. (2014) -- Implicit Incompressible SPH
Hairer et al. (2003) -- Geometric Numerical Integration
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from computationalFluids.FluidSim.sph.particles import FluidParticles


class TimeIntegrator(Protocol):
    '''Protocol for time integration schemes.'''

    def integrate(self, particles: FluidParticles, dt: float) -> None:
        '''Advance the fluid particles by one time step.'''
        ...


class SymplecticEuler:
    '''
    Symplectic (semi-implicit) Euler integrator.

    Update sequence:
        v(t+dt) = v_adv + dt * f_p / m    (kick)
        x(t+dt) = x(t) + dt * v(t+dt)     (drift)

    Boundary particles are not integrated.
    '''

    def integrate(self, particles: FluidParticles, dt: float) -> None:
        '''
        Advance fluid particles by one time step.

        Parameters:
        -----------
        particles : FluidParticles
            Particles with advection velocities and pressure forces computed
        dt : float
            Time step size [s]
        '''
        # Kick
        particles.velocities = (
            particles.advectionVelocities
            + dt * particles.pressureForces / particles.masses[:, np.newaxis]
        )

        # Drift
        particles.positions = particles.positions + dt * particles.velocities
