"""Tests for the reverse reconstruction simulator."""

import pytest
import torch

from diffusion_sim.noise import uniform_noise_buffer
from diffusion_sim.pattern import target_channels
from diffusion_sim.reverse import (
    ReverseFrame, reverse_frame, reverse_trajectory, step_generator,
    structure_clarity, structure_strength
)
from diffusion_sim.utils import make_generator


def error_to_target(buffer: torch.Tensor) -> float:
    height, width = buffer.shape[:2]
    target = torch.clamp(target_channels(width, height), 0, 255)
    return (buffer[..., :3].double() - target).abs().mean().item()


class TestReverseMetrics:
    """Test progress, strength and clarity."""

    def test_clarity_at_start_of_trajectory(self):
        """Test that pure noise reports almost no structure."""
        T = 50
        clarity = structure_clarity(T - 1, T)

        assert clarity == pytest.approx(100 / T)
        assert clarity < 5

    def test_clarity_at_end_of_trajectory(self):
        """Test full clarity at step 0."""
        assert structure_clarity(0, 50) == 100.0

    def test_strength(self):
        """Test strength = sqrt(1 - step / T)."""
        assert structure_strength(0, 50) == 1.0
        assert structure_strength(25, 50) == pytest.approx(0.5 ** 0.5)
        assert structure_strength(49, 50) == pytest.approx(0.02 ** 0.5)


class TestReverseFrame:
    """Test single reverse frames."""

    def test_returns_buffer_and_clarity(self):
        """Test the returned named tuple."""
        result = reverse_frame(10, 50, 32, 24, generator=make_generator(0))

        assert isinstance(result, ReverseFrame)
        assert result.buffer.shape == (24, 32, 4)
        assert result.buffer.dtype == torch.uint8
        assert result.clarity == pytest.approx(80.0)

    def test_start_is_pure_noise(self):
        """Test that the last step returns the unblended noise buffer."""
        frame = reverse_frame(49, 50, 32, 32, generator=make_generator(1))
        noise = uniform_noise_buffer(32, 32, generator=make_generator(1))

        assert torch.equal(frame.buffer, noise)

    def test_end_is_target_pattern(self):
        """Test that step 0 is the rounded target with no residual noise."""
        frame = reverse_frame(0, 50, 32, 32, generator=make_generator(2))
        expected = torch.clamp(torch.round(target_channels(32, 32)), 0, 255).to(torch.uint8)

        assert torch.equal(frame.buffer[..., :3], expected)

    def test_alpha_is_opaque(self):
        """Test alpha for blended and residual-noise frames."""
        for step in [0, 5, 30, 49]:
            frame = reverse_frame(step, 50, 16, 16, generator=make_generator(step))
            assert torch.all(frame.buffer[..., 3] == 255)

    def test_structure_emerges(self):
        """Test that lower steps are closer to the target pattern."""
        noisy = reverse_frame(40, 50, 64, 64, generator=make_generator(3)).buffer
        clearer = reverse_frame(5, 50, 64, 64, generator=make_generator(3)).buffer

        assert error_to_target(clearer) < error_to_target(noisy)

    def test_stable_noise_with_step_generator(self):
        """Test that a per-step generator makes revisiting a step repeatable."""
        frame1 = reverse_frame(20, 50, 32, 32, generator=step_generator(7, 20)).buffer
        frame2 = reverse_frame(20, 50, 32, 32, generator=step_generator(7, 20)).buffer

        assert torch.equal(frame1, frame2)

    def test_unseeded_frames_differ(self):
        """Test that noise is redrawn on every call by default."""
        frame1 = reverse_frame(20, 50, 32, 32).buffer
        frame2 = reverse_frame(20, 50, 32, 32).buffer

        assert not torch.equal(frame1, frame2)


class TestReverseTrajectory:
    """Test stacked reverse frames."""

    def test_default_order(self):
        """Test that the default trajectory runs from T-1 down to 0."""
        frames = reverse_trajectory(10, width=16, height=16, seed=3)

        assert frames.shape == (10, 16, 16, 4)
        assert torch.equal(frames[0], reverse_frame(9, 10, 16, 16, generator=step_generator(3, 9)).buffer)
        assert torch.equal(frames[-1], reverse_frame(0, 10, 16, 16, generator=step_generator(3, 0)).buffer)

    def test_selected_steps(self):
        """Test rendering a subset of steps."""
        frames = reverse_trajectory(50, steps=[49, 25, 0], width=16, height=16)
        assert frames.shape == (3, 16, 16, 4)


if __name__ == "__main__":
    pytest.main([__file__])
