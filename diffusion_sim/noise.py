"""
Noise sampling and the noise transform applied to pixel buffers.

All functions take an optional torch.Generator; None draws from torch's
global generator, so results are only reproducible with a seeded one.
"""

import math
from typing import Optional, Sequence

import torch

# Pixel offset of one standard deviation at noise level 1
NOISE_SCALE = 50.0


def box_muller(
    shape: Sequence[int],
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """
    Standard-normal samples via the Box–Muller transform.

    u1 is drawn from (0, 1] so that log(u1) stays finite.

    Args:
        shape: Output shape
        generator: Optional random generator for reproducibility

    Returns:
        Float64 tensor of N(0, 1) samples
    """
    u1 = 1.0 - torch.rand(tuple(shape), generator=generator, dtype=torch.float64)
    u2 = torch.rand(tuple(shape), generator=generator, dtype=torch.float64)
    return torch.sqrt(-2.0 * torch.log(u1)) * torch.cos(2.0 * math.pi * u2)


def apply_noise(
    buffer: torch.Tensor,
    noise_level: float,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """
    Add Gaussian noise to the colour channels of a pixel buffer.

    Each of R, G, B gets its own sample scaled by noise_level·50; the
    result is rounded and clamped to [0, 255]. Alpha is copied as is.
    noise_level is not clamped.

    Args:
        buffer: uint8 tensor of shape (H, W, 4)
        noise_level: Noise intensity, normally in [0, 1]
        generator: Optional random generator for reproducibility

    Returns:
        New uint8 tensor of shape (H, W, 4)
    """
    rgb = buffer[..., :3].to(torch.float64)
    noise = box_muller(rgb.shape, generator=generator) * (noise_level * NOISE_SCALE)

    noisy = buffer.clone()
    noisy[..., :3] = torch.clamp(torch.round(rgb + noise), 0, 255).to(torch.uint8)
    return noisy


def uniform_noise_buffer(
    width: int,
    height: int,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """Buffer of uniform-random RGB values with an opaque alpha channel."""
    rgb = torch.round(torch.rand((height, width, 3), generator=generator, dtype=torch.float64) * 255)
    alpha = torch.full((height, width, 1), 255.0, dtype=torch.float64)
    return torch.cat([rgb, alpha], dim=-1).to(torch.uint8)


def residual_noise(
    shape: Sequence[int],
    scale: float,
    generator: Optional[torch.Generator] = None
) -> torch.Tensor:
    """Uniform noise in [-scale/2, scale/2)."""
    return (torch.rand(tuple(shape), generator=generator, dtype=torch.float64) - 0.5) * scale
