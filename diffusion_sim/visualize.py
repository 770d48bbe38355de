"""Visualization: schedule curves, trajectory grids and animations."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import torch

from .utils import buffer_to_numpy, save_animation


def plot_schedules(
    schedules_data: Dict[str, Dict[str, torch.Tensor]],
    save_path: Optional[Path] = None,
    selected_step: Optional[int] = None,
    figsize: Tuple[int, int] = (15, 5),
    dpi: int = 150
) -> None:
    """Plot β, ᾱ and SNR curves for different schedules.

    Args:
        schedules_data: Dictionary mapping schedule names to their statistics
        save_path: Optional path to save the plot
        selected_step: Optional step to mark with a vertical line
        figsize: Figure size
        dpi: Resolution of the saved figure
    """
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    colors = ['purple', 'green', 'blue', 'orange', 'red']

    for idx, (schedule_name, stats) in enumerate(schedules_data.items()):
        color = colors[idx % len(colors)]
        timesteps = stats['timesteps'].cpu().numpy()

        axes[0].plot(timesteps, stats['betas'].cpu().numpy(),
                     label=schedule_name, color=color, linewidth=2)
        axes[1].plot(timesteps, stats['alpha_bars'].cpu().numpy(),
                     label=schedule_name, color=color, linewidth=2)
        axes[2].plot(timesteps, stats['snr_db'].cpu().numpy(),
                     label=schedule_name, color=color, linewidth=2)

    axes[0].set_title('β(t) - Noise Rate')
    axes[0].set_ylabel(r'$\beta_t$')

    axes[1].set_title('ᾱ(t) - Signal Retention')
    axes[1].set_ylabel(r'$\bar{\alpha}_t$')
    axes[1].set_ylim(0, 1.05)

    axes[2].set_title('Signal-to-Noise Ratio')
    axes[2].set_ylabel('SNR (dB)')
    axes[2].axhline(y=0, color='black', linestyle='--', alpha=0.5)

    for ax in axes:
        ax.set_xlabel('Step t')
        ax.grid(True, alpha=0.3)
        if selected_step is not None:
            ax.axvline(x=selected_step, color='orange', linestyle='-', alpha=0.8)
        ax.legend()

    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=dpi, bbox_inches='tight')
    else:
        plt.show()

    plt.close(fig)


def save_frame_grid(
    frames: torch.Tensor,
    steps: Sequence[int],
    save_path: Union[str, Path],
    title: Optional[str] = None,
    labels: Optional[Sequence[str]] = None,
    dpi: int = 150
) -> None:
    """Save a row of frames labelled by step.

    Args:
        frames: Tensor of shape (N, H, W, 4)
        steps: Step of each frame, used as column label
        save_path: Path to save the image
        title: Optional title for the plot
        labels: Optional per-frame labels replacing 't=<step>'
        dpi: Resolution of the saved figure
    """
    num_frames = frames.shape[0]
    fig, axes = plt.subplots(1, num_frames, figsize=(num_frames * 2, 2.4))
    if num_frames == 1:
        axes = [axes]

    for idx in range(num_frames):
        axes[idx].imshow(buffer_to_numpy(frames[idx]))
        label = labels[idx] if labels is not None else f't={steps[idx]}'
        axes[idx].set_title(label, fontsize=10)
        axes[idx].axis('off')

    if title:
        fig.suptitle(title, fontsize=14)

    plt.tight_layout()
    Path(save_path).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(save_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)


def create_trajectory_animation(
    frames: Union[torch.Tensor, List[torch.Tensor]],
    save_path: Union[str, Path],
    interval: float = 0.1
) -> None:
    """Write frames collected from a step driver run as GIF.

    Args:
        frames: Tensor of shape (N, H, W, 4) or a list of (H, W, 4) buffers
        save_path: Path to save the animation
        interval: Seconds per frame, usually the driver's tick interval
    """
    save_animation(frames, save_path, duration=interval * 1000.0)
