"""Forward corruption simulator: the base pattern under increasing noise."""

from typing import List, Optional

import torch

from .noise import apply_noise
from .pattern import DEFAULT_HEIGHT, DEFAULT_WIDTH, base_pattern
from .schedules import noise_level
from .utils import clamp_step


def forward_frame(
    step: int,
    total_steps: int,
    schedule: str = "linear",
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """Frame of the forward trajectory at a step.

    The noise level comes from the display schedule (see
    schedules.noise_level), so step 0 returns the base pattern unchanged
    and the last step is close to full noise.

    Args:
        step: Current step, clamped into [0, total_steps - 1]
        total_steps: Number of diffusion steps T
        schedule: Schedule id
        width: Canvas width
        height: Canvas height
        generator: Optional random generator for reproducibility

    Returns:
        uint8 tensor of shape (height, width, 4)
    """
    level = noise_level(step, total_steps, schedule)
    return apply_noise(base_pattern(width, height), level, generator=generator)


def forward_trajectory(
    total_steps: int,
    schedule: str = "linear",
    steps: Optional[List[int]] = None,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """Stack forward frames for a list of steps.

    Args:
        total_steps: Number of diffusion steps T
        schedule: Schedule id
        steps: Steps to render, all steps if None
        width: Canvas width
        height: Canvas height
        generator: Optional random generator for reproducibility

    Returns:
        uint8 tensor of shape (len(steps), height, width, 4)
    """
    if steps is None:
        _, total = clamp_step(0, total_steps)
        steps = list(range(total))

    base = base_pattern(width, height)
    frames = [
        apply_noise(base, noise_level(step, total_steps, schedule), generator=generator)
        for step in steps
    ]
    return torch.stack(frames, dim=0)
