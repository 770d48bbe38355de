"""Diffusion Simulation Engine

This package simulates the forward and reverse diffusion process for
teaching: noise schedules, a synthetic base image, noise applied as a
function of the step, and a step driver for animating trajectories.
"""

__version__ = "0.1.0"
