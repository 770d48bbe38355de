"""Deterministic synthetic base image: concentric rings with a diagonal colour phase."""

import math

import torch

DEFAULT_WIDTH = 200
DEFAULT_HEIGHT = 200


def target_channels(width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> torch.Tensor:
    """
    Unquantized R, G, B values of the ring pattern.

    For pixel (x, y), d is the distance to the canvas centre divided by
    half the shorter side, ring = sin(3πd)·0.5 + 0.5 and
    phase = (x + y) / (width + height):

        R = 255·(1 - d)·ring
        G = 255·phase·ring
        B = 255·d·ring

    Corner pixels have d > 1, so R can be negative here.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels

    Returns:
        Float64 tensor of shape (height, width, 3)
    """
    ys, xs = torch.meshgrid(
        torch.arange(height, dtype=torch.float64),
        torch.arange(width, dtype=torch.float64),
        indexing="ij"
    )

    distance = torch.sqrt((xs - width / 2) ** 2 + (ys - height / 2) ** 2)
    normalized_distance = distance / (min(width, height) / 2)

    ring = torch.sin(normalized_distance * math.pi * 3) * 0.5 + 0.5
    color_phase = (xs + ys) / (width + height)

    return torch.stack([
        255 * (1 - normalized_distance) * ring,
        255 * color_phase * ring,
        255 * normalized_distance * ring,
    ], dim=-1)


def base_pattern(width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> torch.Tensor:
    """
    Base image buffer of the simulation.

    Channels are floored, clamped to [0, 255] and stored as uint8 with an
    opaque alpha channel. Pure function of the dimensions.

    Returns:
        uint8 tensor of shape (height, width, 4)
    """
    rgb = torch.clamp(torch.floor(target_channels(width, height)), 0, 255)
    alpha = torch.full((height, width, 1), 255.0, dtype=rgb.dtype)
    return torch.cat([rgb, alpha], dim=-1).to(torch.uint8)
