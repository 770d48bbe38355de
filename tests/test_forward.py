"""Tests for the forward corruption simulator."""

import pytest
import torch

from diffusion_sim.forward import forward_frame, forward_trajectory
from diffusion_sim.pattern import base_pattern
from diffusion_sim.utils import make_generator


def mean_abs_diff(a: torch.Tensor, b: torch.Tensor) -> float:
    return (a[..., :3].float() - b[..., :3].float()).abs().mean().item()


class TestForwardFrame:
    """Test single forward frames."""

    @pytest.mark.parametrize("schedule", ["linear", "cosine", "exponential", "sigmoid"])
    def test_step_zero_equals_base_pattern(self, schedule):
        """Test that step 0 shows the clean pattern."""
        frame = forward_frame(0, 50, schedule, generator=make_generator(0))
        assert torch.equal(frame, base_pattern(200, 200))

    def test_shape(self):
        """Test custom canvas dimensions."""
        frame = forward_frame(10, 50, "linear", width=48, height=32)
        assert frame.shape == (32, 48, 4)
        assert frame.dtype == torch.uint8

    def test_noise_grows_with_step(self):
        """Test that later steps are farther from the base pattern."""
        base = base_pattern(64, 64)

        early = forward_frame(5, 50, "linear", 64, 64, generator=make_generator(1))
        late = forward_frame(49, 50, "linear", 64, 64, generator=make_generator(1))

        assert mean_abs_diff(late, base) > mean_abs_diff(early, base)

    def test_exponential_is_gentler_early(self):
        """Test that the exponential display schedule adds less noise early on."""
        base = base_pattern(64, 64)

        linear = forward_frame(10, 50, "linear", 64, 64, generator=make_generator(2))
        exponential = forward_frame(10, 50, "exponential", 64, 64, generator=make_generator(2))

        assert mean_abs_diff(exponential, base) < mean_abs_diff(linear, base)

    def test_reproducibility(self):
        """Test seeded frames are identical."""
        frame1 = forward_frame(30, 50, "cosine", 32, 32, generator=make_generator(3))
        frame2 = forward_frame(30, 50, "cosine", 32, 32, generator=make_generator(3))

        assert torch.equal(frame1, frame2)

    def test_out_of_range_step(self):
        """Test that a step past the end renders like the last step."""
        frame1 = forward_frame(70, 50, "linear", 32, 32, generator=make_generator(4))
        frame2 = forward_frame(49, 50, "linear", 32, 32, generator=make_generator(4))

        assert torch.equal(frame1, frame2)


class TestForwardTrajectory:
    """Test stacked forward frames."""

    def test_all_steps(self):
        """Test that the default trajectory has one frame per step."""
        frames = forward_trajectory(10, "linear", width=16, height=16, generator=make_generator(5))

        assert frames.shape == (10, 16, 16, 4)
        assert torch.equal(frames[0], base_pattern(16, 16))

    def test_selected_steps(self):
        """Test rendering a subset of steps."""
        frames = forward_trajectory(50, "cosine", steps=[0, 25, 49], width=16, height=16)
        assert frames.shape == (3, 16, 16, 4)


if __name__ == "__main__":
    pytest.main([__file__])
