"""Pytest configuration and fixtures for timbang tests."""

import pytest
import numpy as np


@pytest.fixture
def random_seed():
    """Set random seed for reproducibility."""
    np.random.seed(42)
    return 42


@pytest.fixture
def unit_cube_8():
    """2×2×2 mesh of the unit cube."""
    from timbang import box_mesh
    return box_mesh(2, 2, 2, name="cube8")


@pytest.fixture
def pair_2d():
    """Non-matching 2D mesh pair on [-1, 1]² (one cell thick in z)."""
    from timbang import box_mesh
    lower = (-1.0, -1.0, -0.05)
    upper = (1.0, 1.0, 0.05)
    source = box_mesh(10, 10, 1, lower, upper, name="source")
    target = box_mesh(13, 11, 1, lower, upper, name="target")
    return source, target


@pytest.fixture
def pair_3d():
    """Non-matching 3D mesh pair on the unit cube."""
    from timbang import box_mesh
    source = box_mesh(4, 4, 4, name="source")
    target = box_mesh(5, 3, 6, name="target")
    return source, target


@pytest.fixture
def graded_pair():
    """Non-uniform source edges against a uniform target."""
    from timbang import box_mesh, box_mesh_from_edges
    source = box_mesh_from_edges(
        [0.0, 0.1, 0.35, 0.5, 0.8, 1.0],
        [0.0, 0.3, 0.45, 1.0],
        [0.0, 0.5, 1.0],
        name="graded",
    )
    target = box_mesh(4, 4, 3, name="uniform")
    return source, target


@pytest.fixture
def small_config():
    """Small, fast run configuration."""
    return {
        'scenario_name': 'Test Run',
        'source_nx': 6, 'source_ny': 6, 'source_nz': 1,
        'target_nx': 7, 'target_ny': 5, 'target_nz': 1,
        'x_range': [-1.0, 1.0], 'y_range': [-1.0, 1.0], 'z_range': [-0.05, 0.05],
        'method': 'conservative',
        'test_kind': 'linear',
        'cyclic_kind': 'cosine_hill_2d',
        'n_cycles': 3,
        'save_plot': False,
    }
