"""Command-line interface for the diffusion simulation."""

import argparse
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional

from omegaconf import DictConfig, OmegaConf
from rich.console import Console
from rich.progress import Progress

from .driver import FORWARD, REVERSE, StepDriver
from .forward import forward_frame, forward_trajectory
from .reverse import reverse_frame, reverse_trajectory, step_generator, structure_clarity
from .schedules import SCHEDULES, AlphaBarCache, beta, noise_level
from .stats import (
    compute_schedule_comparison, compute_schedule_stats, print_schedule_summary,
    save_stats_csv, schedule_table
)
from .utils import Logger, create_output_dirs, make_generator, save_frame, set_seed
from .visualize import create_trajectory_animation, plot_schedules, save_frame_grid

console = Console()

MIN_STEPS = 10
MAX_STEPS = 100

DEFAULT_CONFIG = {
    "seed": 42,
    "diffusion": {
        "T": 50,
        "schedule": "linear",
        "beta_start": 0.0001,
        "beta_end": 0.02,
        "selected_step": 25,
        "timesteps_to_show": [0, 10, 25, 40, 49],
        "compare_schedules": list(SCHEDULES),
    },
    "canvas": {"width": 200, "height": 200},
    "reverse": {"stable_noise": False},
    "output": {"dir": "outputs"},
    "visualization": {"dpi": 150, "figsize": [15, 5]},
}


def load_config(config_path: Optional[str]) -> DictConfig:
    """Load a YAML config on top of the defaults."""
    config = OmegaConf.create(DEFAULT_CONFIG)
    if config_path is None:
        return config
    try:
        return OmegaConf.merge(config, OmegaConf.load(config_path))
    except Exception as e:
        console.print(f"[red]Error loading config {config_path}: {e}[/red]")
        sys.exit(1)


def validate_config(config: DictConfig) -> None:
    """Check the parameters the engine expects the host to enforce."""
    T = config.diffusion.T
    if not MIN_STEPS <= T <= MAX_STEPS:
        raise ValueError(f"diffusion.T must be in [{MIN_STEPS}, {MAX_STEPS}], got {T}")

    beta_start = config.diffusion.beta_start
    beta_end = config.diffusion.beta_end
    if not 0 < beta_start < beta_end < 1:
        raise ValueError(
            f"Need 0 < beta_start < beta_end < 1, got beta_start={beta_start}, beta_end={beta_end}"
        )

    if config.diffusion.schedule not in SCHEDULES:
        console.print(
            f"[yellow]Unknown schedule '{config.diffusion.schedule}', falling back to linear[/yellow]"
        )


def apply_overrides(config: DictConfig, args) -> DictConfig:
    """Override config values with command line arguments."""
    if getattr(args, 'steps', None) is not None:
        config.diffusion.T = args.steps
    if getattr(args, 'schedule', None) is not None:
        config.diffusion.schedule = args.schedule
    if getattr(args, 'step', None) is not None:
        config.diffusion.selected_step = args.step
    if getattr(args, 'out_dir', None) is not None:
        config.output.dir = args.out_dir
    return config


def setup_experiment(args) -> DictConfig:
    """Load, override and validate the config, then seed and create output dirs."""
    config = apply_overrides(load_config(args.config), args)
    validate_config(config)
    set_seed(config.seed)
    create_output_dirs(config.output.dir)

    console.print(f"[green]Diffusion steps: {config.diffusion.T}[/green]")
    console.print(f"[green]Schedule: {config.diffusion.schedule}[/green]")

    return config


def shown_steps(config: DictConfig) -> List[int]:
    """Configured grid steps that fall inside the step domain."""
    T = config.diffusion.T
    return [t for t in config.diffusion.timesteps_to_show if 0 <= t < T]


def run(
    driver: StepDriver,
    on_step: Callable[[int], None],
    sleep: Callable[[float], None] = time.sleep,
    max_ticks: Optional[int] = None
) -> int:
    """
    Host timer loop for a step driver.

    Calls on_step for the current step, then ticks every driver.interval
    seconds until the driver stops, calling on_step whenever the step
    changes.

    Returns:
        Number of ticks delivered
    """
    if not driver.is_running:
        driver.start()

    on_step(driver.current_step)
    ticks = 0

    while driver.is_running and (max_ticks is None or ticks < max_ticks):
        sleep(driver.interval)
        previous = driver.current_step
        step = driver.tick()
        ticks += 1
        if step != previous:
            on_step(step)

    return ticks


def cmd_schedule_show(args):
    """Print β, ᾱ and SNR for the configured schedule."""
    config = setup_experiment(args)
    d = config.diffusion

    stats = compute_schedule_stats(d.T, d.schedule, d.beta_start, d.beta_end)
    selected = min(max(0, d.selected_step), d.T - 1)

    console.print(schedule_table(stats, d.schedule, selected_step=selected))
    print_schedule_summary(stats, d.schedule, console=console)

    cache = AlphaBarCache()
    current_beta = beta(selected, d.T, d.schedule, d.beta_start, d.beta_end)
    current_alpha_bar = cache.lookup(selected, d.T, d.schedule, d.beta_start, d.beta_end)
    console.print(f"\nSelected step {selected}: β = {current_beta:.6f}, ᾱ = {current_alpha_bar:.6f}")


def cmd_schedule_plot(args):
    """Plot β, ᾱ and SNR curves for several schedules."""
    config = setup_experiment(args)
    d = config.diffusion

    console.print("[blue]Plotting schedules...[/blue]")

    schedules = args.schedules or list(d.compare_schedules)
    schedules_data = compute_schedule_comparison(d.T, schedules, d.beta_start, d.beta_end)

    save_path = Path(config.output.dir) / "plots" / "schedules.png"
    plot_schedules(
        schedules_data,
        save_path=save_path,
        selected_step=min(max(0, d.selected_step), d.T - 1),
        figsize=tuple(config.visualization.figsize),
        dpi=config.visualization.dpi
    )

    console.print(f"[green]Saved schedule plots to {save_path}[/green]")


def cmd_schedule_csv(args):
    """Write per-step schedule statistics as CSV."""
    config = setup_experiment(args)
    d = config.diffusion

    stats = compute_schedule_stats(d.T, d.schedule, d.beta_start, d.beta_end)
    csv_path = Path(config.output.dir) / "logs" / f"{d.schedule}_schedule.csv"
    save_stats_csv(stats, csv_path)

    console.print(f"[green]Saved schedule statistics to {csv_path}[/green]")


def cmd_forward_grid(args):
    """Grid of forward frames at the configured steps."""
    config = setup_experiment(args)
    d = config.diffusion

    console.print("[blue]Generating forward trajectory grid...[/blue]")

    steps = shown_steps(config)
    frames = forward_trajectory(
        d.T, d.schedule, steps=steps,
        width=config.canvas.width, height=config.canvas.height,
        generator=make_generator(config.seed)
    )

    save_path = Path(config.output.dir) / "grids" / f"forward_{d.schedule}.png"
    save_frame_grid(
        frames, steps, save_path,
        title=f"Forward Diffusion - {d.schedule}",
        dpi=config.visualization.dpi
    )

    console.print(f"[green]Saved trajectory grid to {save_path}[/green]")


def cmd_reverse_grid(args):
    """Grid of reverse frames at the configured steps, noisiest first."""
    config = setup_experiment(args)
    d = config.diffusion

    console.print("[blue]Generating reverse trajectory grid...[/blue]")

    steps = sorted(shown_steps(config), reverse=True)
    seed = config.seed if config.reverse.stable_noise else None
    frames = reverse_trajectory(
        d.T, steps=steps,
        width=config.canvas.width, height=config.canvas.height,
        generator=make_generator(config.seed), seed=seed
    )

    save_path = Path(config.output.dir) / "grids" / "reverse.png"
    save_frame_grid(
        frames, steps, save_path,
        title="Reverse Diffusion",
        dpi=config.visualization.dpi
    )

    console.print(f"[green]Saved trajectory grid to {save_path}[/green]")


def frame_renderer(config: DictConfig, direction: str):
    """Return a function rendering the frame for a step in the given direction."""
    d = config.diffusion
    width, height = config.canvas.width, config.canvas.height
    generator = make_generator(config.seed)

    if direction == FORWARD:
        def render(step):
            return forward_frame(step, d.T, d.schedule, width, height, generator=generator)
    else:
        def render(step):
            frame_generator = step_generator(config.seed, step) if config.reverse.stable_noise else generator
            return reverse_frame(step, d.T, width, height, generator=frame_generator).buffer

    return render


def animate(config: DictConfig, direction: str) -> Path:
    """Run a step driver to completion and write one GIF frame per step."""
    driver = StepDriver(config.diffusion.T, direction)
    render = frame_renderer(config, direction)
    frames = []

    run(driver, lambda step: frames.append(render(step)), sleep=lambda _: None)

    name = f"forward_{config.diffusion.schedule}.gif" if direction == FORWARD else "reverse.gif"
    save_path = Path(config.output.dir) / "animations" / name
    create_trajectory_animation(frames, save_path, interval=driver.interval)
    return save_path


def cmd_forward_animate(args):
    """Forward trajectory animation."""
    config = setup_experiment(args)
    console.print("[blue]Generating forward animation...[/blue]")
    save_path = animate(config, FORWARD)
    console.print(f"[green]Saved animation to {save_path}[/green]")


def cmd_reverse_animate(args):
    """Reverse trajectory animation."""
    config = setup_experiment(args)
    console.print("[blue]Generating reverse animation...[/blue]")
    save_path = animate(config, REVERSE)
    console.print(f"[green]Saved animation to {save_path}[/green]")


def cmd_play(args):
    """Play a trajectory in the terminal at the driver's cadence."""
    config = setup_experiment(args)
    d = config.diffusion
    direction = args.direction

    driver = StepDriver(d.T, direction)
    render = frame_renderer(config, direction)
    cache = AlphaBarCache()
    sleep = (lambda _: None) if args.no_sleep else time.sleep
    frames_dir = Path(args.frames_dir) if args.frames_dir else None

    with Progress(console=console) as progress:
        task = progress.add_task(f"{direction} diffusion", total=d.T - 1)

        def on_step(step):
            buffer = render(step)
            if frames_dir is not None:
                save_frame(buffer, frames_dir / f"{direction}_{step:03d}.png")

            if direction == FORWARD:
                b = beta(step, d.T, d.schedule, d.beta_start, d.beta_end)
                a_bar = cache.lookup(step, d.T, d.schedule, d.beta_start, d.beta_end)
                level = noise_level(step, d.T, d.schedule)
                progress.console.print(
                    f"step {step:3d}  β = {b:.6f}  ᾱ = {a_bar:.6f}  noise = {level:.2f}"
                )
            else:
                clarity = structure_clarity(step, d.T)
                progress.console.print(f"step {step:3d}  structure clarity = {clarity:.0f}%")
            progress.update(task, completed=abs(step - driver.start_step))

        try:
            ticks = run(driver, on_step, sleep=sleep)
        except KeyboardInterrupt:
            driver.stop()
            console.print("\n[yellow]Interrupted[/yellow]")
            return

    console.print(f"[green]Finished at step {driver.current_step} after {ticks} ticks[/green]")


def cmd_run_all(args):
    """Run every export."""
    config = setup_experiment(args)
    logger = Logger(Path(config.output.dir) / "logs", "diffusion_sim")
    logger.info(f"Running all exports with config: {args.config}")

    commands = [
        ("Schedule plot", cmd_schedule_plot),
        ("Schedule CSV", cmd_schedule_csv),
        ("Forward grid", cmd_forward_grid),
        ("Reverse grid", cmd_reverse_grid),
        ("Forward animation", cmd_forward_animate),
        ("Reverse animation", cmd_reverse_animate),
    ]

    for name, func in commands:
        console.print(f"[yellow]Running: {name}[/yellow]")
        try:
            func(args)
            logger.info(f"Completed: {name}")
        except Exception as e:
            logger.error(f"Error in {name}: {e}")
            raise

    console.print("[bold green]All exports completed![/bold green]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Diffusion simulation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument('--config', type=str, default=None, help='Config file path')
    common_parser.add_argument('--steps', type=int, help='Override number of diffusion steps')
    common_parser.add_argument('--schedule', type=str, help='Override schedule id')
    common_parser.add_argument('--out-dir', type=str, help='Override output directory')

    show_parser = subparsers.add_parser(
        'schedule.show', parents=[common_parser], help='Print schedule table'
    )
    show_parser.add_argument('--step', type=int, help='Step to highlight')

    plot_parser = subparsers.add_parser(
        'schedule.plot', parents=[common_parser], help='Plot noise schedules'
    )
    plot_parser.add_argument('--step', type=int, help='Step to mark')
    plot_parser.add_argument('--schedules', nargs='+', choices=list(SCHEDULES),
                             help='Schedules to compare')

    subparsers.add_parser('schedule.csv', parents=[common_parser], help='Save schedule CSV')
    subparsers.add_parser('forward.grid', parents=[common_parser], help='Forward trajectory grid')
    subparsers.add_parser('reverse.grid', parents=[common_parser], help='Reverse trajectory grid')
    subparsers.add_parser('forward.animate', parents=[common_parser], help='Forward trajectory GIF')
    subparsers.add_parser('reverse.animate', parents=[common_parser], help='Reverse trajectory GIF')

    play_parser = subparsers.add_parser(
        'play', parents=[common_parser], help='Play a trajectory in the terminal'
    )
    play_parser.add_argument('--direction', choices=[FORWARD, REVERSE], default=FORWARD)
    play_parser.add_argument('--no-sleep', action='store_true', help='Tick without waiting')
    play_parser.add_argument('--frames-dir', type=str, help='Save every rendered frame as PNG here')

    subparsers.add_parser('run.all', parents=[common_parser], help='Run all exports')

    return parser


COMMANDS = {
    'schedule.show': cmd_schedule_show,
    'schedule.plot': cmd_schedule_plot,
    'schedule.csv': cmd_schedule_csv,
    'forward.grid': cmd_forward_grid,
    'reverse.grid': cmd_reverse_grid,
    'forward.animate': cmd_forward_animate,
    'reverse.animate': cmd_reverse_animate,
    'play': cmd_play,
    'run.all': cmd_run_all,
}


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    try:
        COMMANDS[args.command](args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise


if __name__ == "__main__":
    main()
