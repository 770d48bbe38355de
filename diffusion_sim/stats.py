"""Schedule statistics: per-step β, ᾱ and SNR tables, summaries and CSV export."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd
import torch
from rich.console import Console
from rich.table import Table

from .schedules import (
    DEFAULT_BETA_END, DEFAULT_BETA_START, SCHEDULE_DESCRIPTIONS, get_schedule
)


def snr(alpha_bars: torch.Tensor) -> torch.Tensor:
    """Signal-to-noise ratio ᾱ / (1 - ᾱ)."""
    return alpha_bars / (1.0 - alpha_bars)


def snr_db(alpha_bars: torch.Tensor) -> torch.Tensor:
    """SNR in decibels."""
    return 10.0 * torch.log10(snr(alpha_bars) + 1e-8)


def compute_schedule_stats(
    total_steps: int,
    schedule: str = "linear",
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> Dict[str, torch.Tensor]:
    """Compute per-step statistics for one schedule.

    Args:
        total_steps: Number of diffusion steps T
        schedule: Schedule id
        beta_start: β at t = 0
        beta_end: β approached as t → 1

    Returns:
        Dictionary with 'timesteps', 'betas', 'alphas', 'alpha_bars',
        'snr_linear' and 'snr_db' tensors of shape (T,)
    """
    betas, alphas, alpha_bars = get_schedule(total_steps, schedule, beta_start, beta_end)

    return {
        'timesteps': torch.arange(len(betas)),
        'betas': betas,
        'alphas': alphas,
        'alpha_bars': alpha_bars,
        'snr_linear': snr(alpha_bars),
        'snr_db': snr_db(alpha_bars),
    }


def compute_schedule_comparison(
    total_steps: int,
    schedules: Sequence[str],
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> Dict[str, Dict[str, torch.Tensor]]:
    """Statistics for several schedules sharing T and the β bounds."""
    return {
        name: compute_schedule_stats(total_steps, name, beta_start, beta_end)
        for name in schedules
    }


def get_schedule_summary(stats: Dict[str, torch.Tensor]) -> dict:
    """Summarize a statistics dictionary.

    Args:
        stats: Output of compute_schedule_stats

    Returns:
        Dictionary with T, β range and ᾱ range
    """
    betas = stats['betas']
    alpha_bars = stats['alpha_bars']

    return {
        "T": len(betas),
        "beta_min": float(betas.min()),
        "beta_max": float(betas.max()),
        "alpha_bar_min": float(alpha_bars.min()),
        "alpha_bar_max": float(alpha_bars.max()),
        "alpha_bar_final": float(alpha_bars[-1]),
        "snr_db_final": float(stats['snr_db'][-1]),
    }


def sample_steps(total_steps: int, num_rows: int = 10) -> List[int]:
    """Evenly spaced steps covering 0 and T-1."""
    if total_steps <= num_rows:
        return list(range(total_steps))
    stride = (total_steps - 1) / (num_rows - 1)
    return sorted({round(i * stride) for i in range(num_rows)})


def schedule_table(
    stats: Dict[str, torch.Tensor],
    schedule: str,
    steps: Optional[Sequence[int]] = None,
    selected_step: Optional[int] = None
) -> Table:
    """Build a rich table of β, ᾱ and SNR at the given steps."""
    T = len(stats['betas'])
    if steps is None:
        steps = sample_steps(T)
    if selected_step is not None and selected_step not in steps:
        steps = sorted(set(steps) | {selected_step})

    title = f"{schedule} schedule"
    if schedule in SCHEDULE_DESCRIPTIONS:
        title += f" - {SCHEDULE_DESCRIPTIONS[schedule]}"

    table = Table(title=title)
    table.add_column("Step", justify="right")
    table.add_column("β(t)", justify="right")
    table.add_column("ᾱ(t)", justify="right")
    table.add_column("SNR (dB)", justify="right")

    for step in steps:
        style = "bold yellow" if step == selected_step else None
        table.add_row(
            str(step),
            f"{float(stats['betas'][step]):.6f}",
            f"{float(stats['alpha_bars'][step]):.6f}",
            f"{float(stats['snr_db'][step]):.2f}",
            style=style,
        )

    return table


def print_schedule_summary(
    stats: Dict[str, torch.Tensor],
    schedule: str,
    console: Optional[Console] = None
) -> None:
    """Print a short summary of a schedule."""
    console = console or Console()
    summary = get_schedule_summary(stats)

    console.print(f"\n[bold]=== {schedule.upper()} Schedule Summary ===[/bold]")
    console.print(f"Total steps: {summary['T']}")
    console.print(f"Beta range: {summary['beta_min']:.6f} - {summary['beta_max']:.6f}")
    console.print(f"Final alpha_bar: {summary['alpha_bar_final']:.6f}")
    console.print(f"Final SNR: {summary['snr_db_final']:.2f} dB")


def save_stats_csv(
    stats: Dict[str, torch.Tensor],
    filepath: Union[str, Path]
) -> pd.DataFrame:
    """Save per-step statistics to a CSV file.

    Args:
        stats: Statistics dictionary from compute_schedule_stats
        filepath: Path to save CSV file

    Returns:
        The DataFrame that was written
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    data = {}
    for key, tensor in stats.items():
        if tensor.dim() == 0:
            continue
        data[key] = tensor.cpu().numpy()

    df = pd.DataFrame(data)
    df.to_csv(filepath, index=False)
    return df
