"""Utility functions: seeding, generators, step clamping, logging, image I/O."""

import random
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import imageio
import numpy as np
import torch
from PIL import Image


def set_seed(seed: int = 42) -> None:
    """Set random seed for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def make_generator(seed: Optional[int] = None) -> torch.Generator:
    """Create a CPU torch generator, seeded if a seed is given."""
    generator = torch.Generator()
    if seed is not None:
        generator.manual_seed(seed)
    return generator


def clamp_step(step: int, total_steps: int) -> Tuple[int, int]:
    """Clamp a step into [0, total_steps - 1].

    Args:
        step: Requested step
        total_steps: Configured number of steps; values below 1 are treated as 1

    Returns:
        Tuple of (clamped_step, safe_total_steps)
    """
    total_steps = max(1, int(total_steps))
    step = min(max(0, int(step)), total_steps - 1)
    return step, total_steps


def create_output_dirs(output_dir: Union[str, Path]) -> Path:
    """Create the output directory tree used by the CLI."""
    output_dir = Path(output_dir)
    for sub in ("grids", "animations", "plots", "logs"):
        (output_dir / sub).mkdir(parents=True, exist_ok=True)
    return output_dir


class Logger:
    """
    Simple run logger writing to the console and to a file
    """

    def __init__(self, log_dir: Union[str, Path], name: str = "diffusion_sim"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

        # Handlers are attached once per logger name
        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(formatter)

            file_handler = logging.FileHandler(self.log_dir / f"{name}.log")
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(formatter)

            self.logger.addHandler(console_handler)
            self.logger.addHandler(file_handler)

    def info(self, msg: str):
        """Log info message"""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message"""
        self.logger.warning(msg)

    def error(self, msg: str):
        """Log error message"""
        self.logger.error(msg)


def buffer_to_numpy(buffer: torch.Tensor, with_alpha: bool = False) -> np.ndarray:
    """Convert an (H, W, 4) uint8 pixel buffer to a numpy array."""
    array = buffer.detach().cpu().numpy().astype(np.uint8)
    if not with_alpha:
        array = array[..., :3]
    return array


def buffer_to_pil(buffer: torch.Tensor) -> Image.Image:
    """Convert an (H, W, 4) uint8 pixel buffer to an RGBA PIL image."""
    # (H, W, 4) uint8 arrays map to RGBA
    return Image.fromarray(buffer_to_numpy(buffer, with_alpha=True))


def save_frame(buffer: torch.Tensor, path: Union[str, Path]) -> None:
    """Save a single pixel buffer as PNG."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    buffer_to_pil(buffer).save(path)


def save_animation(
    frames: Union[torch.Tensor, Sequence[torch.Tensor]],
    path: Union[str, Path],
    duration: float = 100.0,
    loop: int = 0
) -> None:
    """Save a sequence of pixel buffers as animated GIF.

    Args:
        frames: Tensor of shape (N, H, W, 4) or a list of (H, W, 4) buffers
        path: Path to save the animation
        duration: Duration of each frame in milliseconds
        loop: Number of loops (0 = infinite)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    images: List[np.ndarray] = [buffer_to_numpy(frame) for frame in frames]

    imageio.mimsave(
        path,
        images,
        duration=duration,
        loop=loop
    )
