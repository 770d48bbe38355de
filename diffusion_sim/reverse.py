"""Reverse (reconstruction) simulator

No model is involved: each frame starts from fresh uniform noise and is
blended towards the ring pattern in proportion to how far the reverse
trajectory has progressed, with extra residual noise while the step is
still high. Frames are independent of each other; pass a per-step
generator (step_generator) to get the same frame every time a step is
revisited.
"""

from typing import List, NamedTuple, Optional

import torch

from .noise import residual_noise, uniform_noise_buffer
from .pattern import DEFAULT_HEIGHT, DEFAULT_WIDTH, target_channels
from .utils import clamp_step, make_generator

# Residual noise is only added above this fraction of the trajectory
RESIDUAL_NOISE_THRESHOLD = 0.2
# Width of the residual uniform noise at step/T = 1
RESIDUAL_NOISE_SCALE = 20.0


class ReverseFrame(NamedTuple):
    """Reverse frame and its structure clarity in percent."""

    buffer: torch.Tensor
    clarity: float


def reverse_progress(step: int, total_steps: int) -> float:
    """1 - step / T: 0 at pure noise, 1 at the end of the reverse trajectory."""
    step, total_steps = clamp_step(step, total_steps)
    return 1.0 - step / total_steps


def structure_strength(step: int, total_steps: int) -> float:
    """Blend weight of the target pattern: sqrt(progress)."""
    return reverse_progress(step, total_steps) ** 0.5


def structure_clarity(step: int, total_steps: int) -> float:
    """Structure clarity in percent, capped at 100."""
    return min(100.0, reverse_progress(step, total_steps) * 100)


def step_generator(seed: int, step: int) -> torch.Generator:
    """Generator derived from a base seed and a step, for stable scrubbing."""
    return make_generator(seed * 65536 + step)


def reverse_frame(
    step: int,
    total_steps: int,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    generator: Optional[torch.Generator] = None
) -> ReverseFrame:
    """
    Simulated denoising frame at a step of the reverse trajectory.

    Args:
        step: Current step, clamped into [0, total_steps - 1]
        total_steps: Number of diffusion steps T
        width: Canvas width
        height: Canvas height
        generator: Optional random generator for reproducibility

    Returns:
        ReverseFrame(buffer, clarity) with buffer of shape (height, width, 4)
    """
    step, total_steps = clamp_step(step, total_steps)
    clarity = structure_clarity(step, total_steps)

    noisy = uniform_noise_buffer(width, height, generator=generator)

    # The trajectory starts from pure noise
    if step == total_steps - 1:
        return ReverseFrame(noisy, clarity)

    strength = structure_strength(step, total_steps)
    target = target_channels(width, height)

    rgb = noisy[..., :3].to(torch.float64) * (1 - strength) + target * strength
    rgb = torch.clamp(torch.round(rgb), 0, 255)

    if step > total_steps * RESIDUAL_NOISE_THRESHOLD:
        scale = (step / total_steps) * RESIDUAL_NOISE_SCALE
        rgb = rgb + residual_noise(rgb.shape, scale, generator=generator)
        rgb = torch.clamp(torch.round(rgb), 0, 255)

    buffer = noisy.clone()
    buffer[..., :3] = rgb.to(torch.uint8)
    return ReverseFrame(buffer, clarity)


def reverse_trajectory(
    total_steps: int,
    steps: Optional[List[int]] = None,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    generator: Optional[torch.Generator] = None,
    seed: Optional[int] = None
) -> torch.Tensor:
    """Stack reverse frames, from pure noise down to step 0 by default.

    Args:
        total_steps: Number of diffusion steps T
        steps: Steps to render, T-1 down to 0 if None
        width: Canvas width
        height: Canvas height
        generator: Optional random generator shared by all frames
        seed: If given, each frame uses step_generator(seed, step) instead

    Returns:
        uint8 tensor of shape (len(steps), height, width, 4)
    """
    if steps is None:
        _, total = clamp_step(0, total_steps)
        steps = list(range(total - 1, -1, -1))

    frames = []
    for step in steps:
        frame_generator = step_generator(seed, step) if seed is not None else generator
        frames.append(reverse_frame(step, total_steps, width, height, generator=frame_generator).buffer)
    return torch.stack(frames, dim=0)
