"""Tests for configuration loading."""

import math
import os

import yaml


class TestLoadConfig:
    """Tests for YAML configuration."""

    def test_defaults(self):
        """Test that no path gives the defaults."""
        from arcschematize.config import load_config

        config = load_config()

        assert config.frechet.distance == "euclidean-approx"
        assert config.frechet.eps == 1.01
        assert config.schematization.angle_steps == 41
        assert config.schematization.num_candidates == 3
        assert config.run.max_cost == math.inf
        assert config.run.max_steps is None
        assert not config.tracing.enabled

    def test_missing_file_gives_defaults(self, temp_dir):
        """Test that a path that does not exist is ignored."""
        from arcschematize.config import load_config

        config = load_config(os.path.join(temp_dir, "absent.yaml"))

        assert config.schematization.max_cross_dist_frac == 0.0075

    def test_partial_override(self, temp_dir):
        """Test that given keys override and unknown keys are ignored."""
        from arcschematize.config import load_config

        path = os.path.join(temp_dir, "config.yaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({
                "frechet": {"distance": "linf"},
                "schematization": {"num_candidates": 5, "no_such_key": 1},
                "unknown_section": {"a": 1},
            }, f)

        config = load_config(path)

        assert config.frechet.distance == "linf"
        assert config.frechet.eps == 1.01
        assert config.schematization.num_candidates == 5
        assert not hasattr(config.schematization, "no_such_key")

    def test_empty_file(self, temp_dir):
        """Test that an empty file gives the defaults."""
        from arcschematize.config import load_config

        path = os.path.join(temp_dir, "empty.yaml")
        open(path, "w").close()

        assert load_config(path).run.max_complexity == 0

    def test_save_default_round_trip(self, temp_dir):
        """Test that the saved defaults load back unchanged."""
        from arcschematize.config import PipelineConfig, load_config, save_default_config

        path = os.path.join(temp_dir, "defaults.yaml")
        save_default_config(path)

        assert load_config(path) == PipelineConfig()
