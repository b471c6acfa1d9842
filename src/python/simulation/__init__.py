"""
===============================================================================
AHRS PROJECT - Simulation
===============================================================================
Closed-loop runs of the attitude filter against simulated sensors.

Modules:
    scenario -- Truth generation, filter loop, summary statistics
    plots    -- Matplotlib time histories of a run
===============================================================================
"""
