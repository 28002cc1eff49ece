"""Pytest fixtures for arc schematization tests."""

import tempfile

import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from arcschematize.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def fast_config():
    """Pipeline configuration with a coarse candidate sweep and distance."""
    from arcschematize.config import PipelineConfig
    config = PipelineConfig()
    config.schematization.angle_steps = 11
    config.frechet.eps = 1.1
    return config


@pytest.fixture
def frechet(fast_config):
    """Fréchet engine for the fast configuration."""
    from arcschematize.frechet.frechet import frechet_from_config
    return frechet_from_config(fast_config.frechet)


def wiggly_line():
    """A single open line zig-zagging along the x axis."""
    stations = {
        "w1": (0, 0), "w2": (2, 0.8), "w3": (4, 0.1),
        "w4": (6, 0.9), "w5": (8, 0.2), "w6": (10, 1.0),
    }
    return stations, [["w1", "w2", "w3", "w4", "w5", "w6"]]


def three_line_hub():
    """Three lines through one shared station X."""
    stations = {
        "X": (0, 0),
        "a1": (-6, 0.3), "a2": (-4, -0.2), "a3": (-2, 0.25),
        "a4": (2, -0.2), "a5": (4, 0.3), "a6": (6, 0),
        "b1": (0.3, -6), "b2": (-0.2, -4), "b3": (0.25, -2),
        "b4": (-0.2, 2), "b5": (0.3, 4), "b6": (0, 6),
        "c1": (-5, -5.3), "c2": (-3, -2.7), "c3": (-1.5, -1.3),
        "c4": (1.3, 1.6), "c5": (3, 2.8), "c6": (5, 5.2),
    }
    lines = [
        ["a1", "a2", "a3", "X", "a4", "a5", "a6"],
        ["b1", "b2", "b3", "X", "b4", "b5", "b6"],
        ["c1", "c2", "c3", "X", "c4", "c5", "c6"],
    ]
    return stations, lines


def plus_crossing():
    """Two straight lines sharing their middle station X."""
    stations = {
        "a1": (-4, 0.5), "a2": (-2, 0), "X": (0, 0), "a3": (2, 0), "a4": (4, 0.5),
        "b1": (0.5, -4), "b2": (0, -2), "b3": (0, 2), "b4": (0.5, 4),
    }
    lines = [
        ["a1", "a2", "X", "a3", "a4"],
        ["b1", "b2", "X", "b3", "b4"],
    ]
    return stations, lines


def t_junction():
    """A bent line with a second line ending at its bend."""
    stations = {"a1": (-4, 0), "a2": (0, 1), "a3": (4, 0), "b1": (0, 5)}
    lines = [["a1", "a2", "a3"], ["b1", "a2"]]
    return stations, lines


def bend_over_bar():
    """A bent line arching over a short unrelated bar."""
    stations = {"a1": (-4, 0), "a2": (0, 2), "a3": (4, 0), "c1": (0, 1), "c2": (0, -1)}
    lines = [["a1", "a2", "a3"], ["c1", "c2"]]
    return stations, lines


def jittered_hub(seed, strokes=3):
    """
    Lines through one shared station H at evenly spread, jittered angles.

    Each line has three stations on either side of H, pushed off its axis by
    a random offset.
    """
    rng = np.random.default_rng(seed)
    spread = 0.6 / strokes
    stations = {"H": (0.0, 0.0)}
    lines = []
    for s in range(strokes):
        theta = s * np.pi / strokes + rng.uniform(-spread, spread)
        direction = np.array([np.cos(theta), np.sin(theta)])
        normal = np.array([-direction[1], direction[0]])
        line = []
        for k, along in enumerate((-6.0, -4.0, -2.0, 0.0, 2.0, 4.0, 6.0)):
            if along == 0.0:
                line.append("H")
                continue
            name = f"s{s}_{k}"
            p = along * direction + rng.uniform(-spread, spread) * normal
            stations[name] = (float(p[0]), float(p[1]))
            line.append(name)
        lines.append(line)
    return stations, lines


@pytest.fixture
def wiggly_network():
    """Network with one open stroke and no crossings."""
    from arcschematize.network.builder import build_network
    return build_network(*wiggly_line())


@pytest.fixture
def hub_network():
    """Network with three strokes meeting at one crossing."""
    from arcschematize.network.builder import build_network
    return build_network(*three_line_hub())


@pytest.fixture
def plus_network():
    """Network with two strokes crossing at a shared station."""
    from arcschematize.network.builder import build_network
    return build_network(*plus_crossing())


@pytest.fixture
def t_network():
    """Network with a stroke ending on another stroke's bend."""
    from arcschematize.network.builder import build_network
    return build_network(*t_junction())


@pytest.fixture
def bar_network():
    """Network where straightening the bend would cut through another stroke."""
    from arcschematize.network.builder import build_network
    return build_network(*bend_over_bar())


@pytest.fixture
def make_engine(fast_config, frechet):
    """Factory creating an initialized engine for a network."""
    from arcschematize.schematization.engine import IterativeSchematization

    def factory(network):
        engine = IterativeSchematization(fast_config.schematization, frechet)
        engine.init(network)
        return engine

    return factory
