"""
Noise schedules for the diffusion simulation.

Key components:
- β_t for the linear, cosine, exponential and sigmoid families
- ᾱ_t = ∏(1 - β_i) as a scalar product and as a vectorized cumprod
- display noise level used by the forward corruption simulator
- AlphaBarCache: prefix-product table for per-frame ᾱ lookups

Unknown schedule ids fall back to linear instead of raising.
"""

import math
import logging
from typing import NamedTuple, Optional, Tuple

import torch

from .utils import clamp_step

logger = logging.getLogger(__name__)

SCHEDULES = ("linear", "cosine", "exponential", "sigmoid")

SCHEDULE_DESCRIPTIONS = {
    "linear": "Constant rate of noise addition",
    "cosine": "Slower start, faster middle, slower end",
    "exponential": "Exponentially increasing noise",
    "sigmoid": "S-curve shaped noise schedule",
}

DEFAULT_BETA_START = 0.0001
DEFAULT_BETA_END = 0.02


def _sigmoid(x: float) -> float:
    return 1 / (1 + math.exp(-x))


# σ(10·(t - 0.5)) at t = 0 and t = 1
_SIGMOID_LOW = _sigmoid(-5.0)
_SIGMOID_HIGH = _sigmoid(5.0)


def normalized_time(step: int, total_steps: int) -> float:
    """Map a step to t = step / total_steps after clamping into the step domain."""
    step, total_steps = clamp_step(step, total_steps)
    return step / total_steps


def schedule_shape(t: float, schedule: str) -> float:
    """
    Shape of a β schedule family on normalized time t ∈ [0, 1].

    Every family maps 0 → 0 and 1 → 1 and is increasing in between.
    The sigmoid σ(10·(t - 0.5)) is rescaled by its values at t = 0 and
    t = 1 so that it hits both end points exactly.
    """
    if schedule == "linear":
        return t
    elif schedule == "cosine":
        return (1 - math.cos(math.pi * t)) / 2
    elif schedule == "exponential":
        return t * t
    elif schedule == "sigmoid":
        return (_sigmoid(10 * (t - 0.5)) - _SIGMOID_LOW) / (_SIGMOID_HIGH - _SIGMOID_LOW)
    logger.debug("Unknown schedule %r, using linear", schedule)
    return t


def beta(
    step: int,
    total_steps: int,
    schedule: str = "linear",
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> float:
    """
    β at a single step.

    Args:
        step: Step index, clamped into [0, total_steps - 1]
        total_steps: Number of diffusion steps T
        schedule: Schedule id ("linear", "cosine", "exponential", "sigmoid")
        beta_start: β at t = 0
        beta_end: β approached as t → 1

    Returns:
        β value in [beta_start, beta_end]
    """
    t = normalized_time(step, total_steps)
    return beta_start + (beta_end - beta_start) * schedule_shape(t, schedule)


def alpha_bar(
    step: int,
    total_steps: int,
    schedule: str = "linear",
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> float:
    """
    ᾱ at a single step: product of (1 - β_i) for i in [0, step].

    Cost is O(step); use AlphaBarCache when looking up many steps.
    """
    step, total_steps = clamp_step(step, total_steps)
    result = 1.0
    for i in range(step + 1):
        result *= 1.0 - beta(i, total_steps, schedule, beta_start, beta_end)
    return result


def noise_level(step: int, total_steps: int, schedule: str = "linear") -> float:
    """
    Display noise level in [0, 1) for the forward corruption simulator.

    This is a direct function of t, not a cumulative product, and only
    knows linear, cosine and exponential; every other id is linear.
    """
    t = normalized_time(step, total_steps)
    if schedule == "cosine":
        return 0.5 * (1 - math.cos(math.pi * t))
    elif schedule == "exponential":
        return t * t
    return t


def make_beta_schedule(
    total_steps: int,
    schedule: str = "linear",
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> torch.Tensor:
    """Create the full β schedule.

    Args:
        total_steps: Number of diffusion steps T
        schedule: Schedule id
        beta_start: β at t = 0
        beta_end: β approached as t → 1

    Returns:
        β values of shape (T,), float64 so they match the scalar form
    """
    total_steps = max(1, int(total_steps))
    t = torch.arange(total_steps, dtype=torch.float64) / total_steps

    if schedule == "linear":
        shape = t
    elif schedule == "cosine":
        shape = (1 - torch.cos(math.pi * t)) / 2
    elif schedule == "exponential":
        shape = t ** 2
    elif schedule == "sigmoid":
        shape = (torch.sigmoid(10 * (t - 0.5)) - _SIGMOID_LOW) / (_SIGMOID_HIGH - _SIGMOID_LOW)
    else:
        logger.debug("Unknown schedule %r, using linear", schedule)
        shape = t

    return beta_start + (beta_end - beta_start) * shape


def compute_alpha_schedule(betas: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """Compute alpha and alpha_bar from a beta schedule.

    Args:
        betas: Beta values of shape (T,)

    Returns:
        Tuple of (alphas, alpha_bars) both of shape (T,)
    """
    alphas = 1.0 - betas
    alpha_bars = torch.cumprod(alphas, dim=0)

    return alphas, alpha_bars


def get_schedule(
    total_steps: int,
    schedule: str = "linear",
    beta_start: float = DEFAULT_BETA_START,
    beta_end: float = DEFAULT_BETA_END
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """Get (betas, alphas, alpha_bars) for a schedule."""
    betas = make_beta_schedule(total_steps, schedule, beta_start, beta_end)
    alphas, alpha_bars = compute_alpha_schedule(betas)

    return betas, alphas, alpha_bars


class ScheduleParams(NamedTuple):
    """Everything ᾱ depends on; used as the cache key."""

    schedule: str
    beta_start: float
    beta_end: float
    total_steps: int


class AlphaBarCache:
    """
    Prefix-product table of ᾱ for one set of schedule parameters.

    The table is rebuilt whenever a lookup arrives with parameters that
    differ from the cached key, so callers never read stale values.
    The cache belongs to the host and is not thread-safe.
    """

    def __init__(self):
        self.key: Optional[ScheduleParams] = None
        self.alpha_bars: Optional[torch.Tensor] = None
        self.builds = 0

    def invalidate(self) -> None:
        """Drop the cached table."""
        self.key = None
        self.alpha_bars = None

    def table(
        self,
        total_steps: int,
        schedule: str = "linear",
        beta_start: float = DEFAULT_BETA_START,
        beta_end: float = DEFAULT_BETA_END
    ) -> torch.Tensor:
        """Return the ᾱ table of shape (T,), rebuilding it on a key change."""
        key = ScheduleParams(schedule, float(beta_start), float(beta_end), max(1, int(total_steps)))
        if key != self.key or self.alpha_bars is None:
            _, _, self.alpha_bars = get_schedule(
                key.total_steps, key.schedule, key.beta_start, key.beta_end
            )
            self.key = key
            self.builds += 1
            logger.debug("Rebuilt alpha_bar table for %s", key)
        return self.alpha_bars

    def lookup(
        self,
        step: int,
        total_steps: int,
        schedule: str = "linear",
        beta_start: float = DEFAULT_BETA_START,
        beta_end: float = DEFAULT_BETA_END
    ) -> float:
        """ᾱ at a step, served from the table."""
        alpha_bars = self.table(total_steps, schedule, beta_start, beta_end)
        step, _ = clamp_step(step, total_steps)
        return float(alpha_bars[step])
