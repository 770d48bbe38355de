"""Step driver: play/pause state machine over the diffusion step domain.

The driver does not own a timer. The host calls tick() every
`driver.interval` seconds while the driver is running, one tick at a time.
"""

from enum import Enum

from .utils import clamp_step

FORWARD = "forward"
REVERSE = "reverse"

# Seconds between ticks
TICK_INTERVALS = {
    FORWARD: 0.100,
    REVERSE: 0.150,
}


class DriverState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class StepDriver:
    """
    Advances (forward) or retreats (reverse) a step counter.

    Reaching either end of the trajectory clamps the step to the edge and
    stops the driver; it never loops.
    """

    def __init__(self, total_steps: int, direction: str = FORWARD):
        """
        Args:
            total_steps: Number of diffusion steps T
            direction: "forward" (0 → T-1) or "reverse" (T-1 → 0)
        """
        if direction not in TICK_INTERVALS:
            raise ValueError(f"Unknown direction: {direction}")

        self.direction = direction
        _, self.total_steps = clamp_step(0, total_steps)
        self.state = DriverState.STOPPED
        self.current_step = self.start_step

    @property
    def start_step(self) -> int:
        """Start edge of the trajectory."""
        return 0 if self.direction == FORWARD else self.total_steps - 1

    @property
    def end_step(self) -> int:
        return self.total_steps - 1 if self.direction == FORWARD else 0

    @property
    def interval(self) -> float:
        return TICK_INTERVALS[self.direction]

    @property
    def is_running(self) -> bool:
        return self.state is DriverState.RUNNING

    @property
    def progress(self) -> float:
        """current_step / total_steps, as shown by the progress bar."""
        return self.current_step / self.total_steps

    def start(self) -> None:
        self.state = DriverState.RUNNING

    def stop(self) -> None:
        self.state = DriverState.STOPPED

    def toggle(self) -> None:
        """Play/pause."""
        if self.is_running:
            self.stop()
        else:
            self.start()

    def tick(self) -> int:
        """
        Move one step in the driver's direction.

        No-op while stopped. Crossing the end of the domain clamps to the
        end step and stops the driver.

        Returns:
            The current step after the tick
        """
        if not self.is_running:
            return self.current_step

        delta = 1 if self.direction == FORWARD else -1
        next_step = self.current_step + delta

        if next_step >= self.total_steps or next_step < 0:
            self.current_step = self.end_step
            self.stop()
        else:
            self.current_step = next_step

        return self.current_step

    def reset(self) -> None:
        """Back to the start edge, stopped."""
        self.current_step = self.start_step
        self.stop()

    def seek(self, step: int) -> int:
        """
        Jump to a step (manual scrubbing), clamped into the domain.

        Hosts only allow this while stopped; the driver does not check.
        """
        self.current_step, _ = clamp_step(step, self.total_steps)
        return self.current_step

    def set_total_steps(self, total_steps: int) -> None:
        """Change T and keep the current step inside the new domain."""
        at_start = self.current_step == self.start_step
        _, self.total_steps = clamp_step(0, total_steps)

        if self.direction == REVERSE and at_start and not self.is_running:
            self.current_step = self.start_step
        else:
            self.current_step, _ = clamp_step(self.current_step, self.total_steps)

    def __repr__(self) -> str:
        return (f"StepDriver(direction={self.direction!r}, step={self.current_step}, "
                f"total_steps={self.total_steps}, state={self.state.value})")
