"""Tests for the command-line interface."""

import pytest
from omegaconf import OmegaConf

from diffusion_sim.cli import load_config, main, shown_steps, validate_config


@pytest.fixture
def config_path(tmp_path):
    """Small config writing into a temporary output directory."""
    config = OmegaConf.create({
        "diffusion": {"T": 10, "schedule": "cosine", "selected_step": 4,
                      "timesteps_to_show": [0, 5, 9, 20]},
        "canvas": {"width": 16, "height": 16},
        "output": {"dir": str(tmp_path / "out")},
        "visualization": {"dpi": 50},
    })
    path = tmp_path / "config.yaml"
    OmegaConf.save(config, path)
    return path


class TestConfig:
    """Test config loading and validation."""

    def test_defaults(self):
        """Test the built-in defaults."""
        config = load_config(None)

        assert config.diffusion.T == 50
        assert config.diffusion.schedule == "linear"
        assert config.canvas.width == 200

    def test_merge_with_file(self, config_path):
        """Test that a file overrides only the keys it sets."""
        config = load_config(str(config_path))

        assert config.diffusion.T == 10
        assert config.diffusion.beta_end == 0.02

    def test_missing_file_exits(self, tmp_path):
        """Test that a bad config path exits with status 1."""
        with pytest.raises(SystemExit) as exc:
            load_config(str(tmp_path / "missing.yaml"))
        assert exc.value.code == 1

    def test_steps_out_of_range(self):
        """Test the host-side step range check."""
        config = load_config(None)
        config.diffusion.T = 5
        with pytest.raises(ValueError):
            validate_config(config)

    def test_beta_bounds(self):
        """Test the host-side beta bound check."""
        config = load_config(None)
        config.diffusion.beta_start = 0.05
        with pytest.raises(ValueError):
            validate_config(config)

    def test_unknown_schedule_is_not_an_error(self):
        """Test that an unknown schedule only warns."""
        config = load_config(None)
        config.diffusion.schedule = "quadratic"
        validate_config(config)

    def test_shown_steps_filtered(self, config_path):
        """Test that grid steps outside the domain are dropped."""
        config = load_config(str(config_path))
        assert shown_steps(config) == [0, 5, 9]


class TestCommands:
    """Smoke tests for CLI commands."""

    def test_schedule_show(self, config_path, capsys):
        """Test the schedule table command."""
        main(['schedule.show', '--config', str(config_path)])
        assert "Selected step 4" in capsys.readouterr().out

    def test_schedule_csv(self, config_path, tmp_path):
        """Test the CSV export command."""
        main(['schedule.csv', '--config', str(config_path)])
        assert (tmp_path / "out" / "logs" / "cosine_schedule.csv").exists()

    def test_schedule_plot(self, config_path, tmp_path):
        """Test the schedule plot command."""
        main(['schedule.plot', '--config', str(config_path), '--schedules', 'linear', 'sigmoid'])
        assert (tmp_path / "out" / "plots" / "schedules.png").exists()

    def test_grids(self, config_path, tmp_path):
        """Test forward and reverse grids."""
        main(['forward.grid', '--config', str(config_path)])
        main(['reverse.grid', '--config', str(config_path)])

        assert (tmp_path / "out" / "grids" / "forward_cosine.png").exists()
        assert (tmp_path / "out" / "grids" / "reverse.png").exists()

    def test_animations(self, config_path, tmp_path):
        """Test forward and reverse GIFs."""
        main(['forward.animate', '--config', str(config_path), '--schedule', 'linear'])
        main(['reverse.animate', '--config', str(config_path)])

        assert (tmp_path / "out" / "animations" / "forward_linear.gif").exists()
        assert (tmp_path / "out" / "animations" / "reverse.gif").exists()

    def test_play_saves_frames(self, config_path, tmp_path, capsys):
        """Test terminal playback with frame export."""
        frames_dir = tmp_path / "frames"
        main(['play', '--config', str(config_path), '--no-sleep',
              '--direction', 'reverse', '--frames-dir', str(frames_dir)])

        assert len(list(frames_dir.glob("reverse_*.png"))) == 10
        assert "Finished at step 0" in capsys.readouterr().out

    def test_invalid_steps_raise(self, config_path):
        """Test that out-of-range T is reported as an error."""
        with pytest.raises(ValueError):
            main(['schedule.show', '--config', str(config_path), '--steps', '500'])


if __name__ == "__main__":
    pytest.main([__file__])
