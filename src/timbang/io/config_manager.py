"""
Configuration Manager for Remap Verification Runs.

Config files are plain text:

    # Conservative remap, 2D pair
    scenario_name = Case 1 - Conservative 2D
    source_nx = 20
    target_nx = 27
    method = conservative
    x_range = -1.0, 1.0      # comma-separated floats become lists

Values are converted to bool, int, float, list of floats or str, in that
order of preference.
"""

from pathlib import Path
from typing import Any, Dict, List

from ..core.analytic import parse_test_kind
from ..core.mapper import parse_method


REQUIRED_KEYS = [
    'scenario_name',
    'source_nx', 'source_ny', 'source_nz',
    'target_nx', 'target_ny', 'target_nz',
    'x_range', 'y_range', 'z_range',
    'method',
]

POSITIVE_INT_KEYS = [
    'source_nx', 'source_ny', 'source_nz',
    'target_nx', 'target_ny', 'target_nz',
]


_COMMON = {
    'n_threads': 1,
    'force_recalc': False,
    'write_addr': False,
    'test_only': True,
    'test_kind': 'linear',
    'cyclic_kind': 'cosine_hill_2d',
    'n_cycles': 250,
    'time': 0.0,
    'source_case': 'source',
    'target_case': 'target',
    'cache_dir': 'cache',
    'save_plot': True,
    'drift_warning': 1e-8,
}


DEFAULT_CONFIGS = {
    'case1': {
        'scenario_name': 'Case 1 - Conservative 2D Cosine Hill',
        'source_nx': 20, 'source_ny': 20, 'source_nz': 1,
        'target_nx': 27, 'target_ny': 23, 'target_nz': 1,
        'x_range': [-1.0, 1.0], 'y_range': [-1.0, 1.0], 'z_range': [-0.05, 0.05],
        'method': 'conservative',
    },
    'case2': {
        'scenario_name': 'Case 2 - Conservative 3D Linear',
        'source_nx': 8, 'source_ny': 8, 'source_nz': 8,
        'target_nx': 11, 'target_ny': 9, 'target_nz': 7,
        'x_range': [0.0, 1.0], 'y_range': [0.0, 1.0], 'z_range': [0.0, 1.0],
        'method': 'conservative',
        'test_kind': 'linear',
    },
    'case3': {
        'scenario_name': 'Case 3 - Inverse Distance 2D',
        'source_nx': 20, 'source_ny': 20, 'source_nz': 1,
        'target_nx': 27, 'target_ny': 23, 'target_nz': 1,
        'x_range': [-1.0, 1.0], 'y_range': [-1.0, 1.0], 'z_range': [-0.05, 0.05],
        'method': 'inverse_distance',
        'n_cycles': 50,
    },
    'case4': {
        'scenario_name': 'Case 4 - First Order Conservative 2D',
        'source_nx': 20, 'source_ny': 20, 'source_nz': 1,
        'target_nx': 27, 'target_ny': 23, 'target_nz': 1,
        'x_range': [-1.0, 1.0], 'y_range': [-1.0, 1.0], 'z_range': [-0.05, 0.05],
        'method': 'conservative_first_order',
        'test_kind': 'sinusoid_2d',
        'n_cycles': 100,
    },
}


class ConfigManager:
    """Load, save, validate and provide default run configurations."""

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a text file.

        Args:
            config_path: Path to config file

        Returns:
            Configuration dictionary
        """
        config = {}

        with open(config_path, 'r') as f:
            for line_number, line in enumerate(f, 1):
                line = line.split('#', 1)[0].strip()
                if not line:
                    continue

                if '=' not in line:
                    raise ValueError(
                        f"{config_path}:{line_number}: expected 'key = value', got {line!r}"
                    )

                key, value = line.split('=', 1)
                config[key.strip()] = ConfigManager._parse_value(value.strip())

        return config

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Convert a raw config string to bool, int, float, float list or str."""
        lowered = value.lower()
        if lowered in ('true', 'yes', 'on'):
            return True
        if lowered in ('false', 'no', 'off'):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if ',' in value:
            try:
                return [float(v) for v in value.split(',')]
            except ValueError:
                pass

        return value

    @staticmethod
    def save(config: Dict[str, Any], config_path: str):
        """Write configuration as a text file loadable by load()."""
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            f.write(f"# {config.get('scenario_name', 'timbang configuration')}\n")
            for key, value in config.items():
                if isinstance(value, (list, tuple)):
                    value = ', '.join(repr(float(v)) for v in value)
                f.write(f"{key} = {value}\n")

    @staticmethod
    def get_default_config(case: str) -> Dict[str, Any]:
        """
        Default configuration for a named case.

        Args:
            case: 'case1' to 'case4'

        Returns:
            Configuration dictionary
        """
        if case not in DEFAULT_CONFIGS:
            raise ValueError(
                f"Unknown case '{case}' (expected one of: {', '.join(DEFAULT_CONFIGS)})"
            )

        config = dict(_COMMON)
        config.update(DEFAULT_CONFIGS[case])
        return {k: (list(v) if isinstance(v, list) else v) for k, v in config.items()}

    @staticmethod
    def with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        """Fill optional keys that a loaded file leaves out."""
        merged = dict(_COMMON)
        merged.update(config)
        return merged

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Check a configuration before running it.

        Raises:
            ValueError: on missing keys, bad mesh sizes, bad ranges, or an
                unknown method or test field kind
        """
        missing = [k for k in REQUIRED_KEYS if k not in config]
        if missing:
            raise ValueError(f"Missing config keys: {', '.join(missing)}")

        for key in POSITIVE_INT_KEYS:
            value = config[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{key} must be a positive integer, got {value!r}")

        for key in ('x_range', 'y_range', 'z_range'):
            ConfigManager._check_range(key, config[key])

        parse_method(config['method'], "configuration key 'method'")

        for key in ('test_kind', 'cyclic_kind'):
            if key in config:
                parse_test_kind(config[key], f"configuration key '{key}'")

        n_cycles = config.get('n_cycles', 1)
        if isinstance(n_cycles, bool) or not isinstance(n_cycles, int) or n_cycles < 1:
            raise ValueError(f"n_cycles must be a positive integer, got {n_cycles!r}")

        n_threads = config.get('n_threads', 1)
        if isinstance(n_threads, bool) or not isinstance(n_threads, int) or n_threads == 0 or n_threads < -1:
            raise ValueError(f"n_threads must be positive or -1, got {n_threads!r}")

        return True

    @staticmethod
    def _check_range(key: str, value: Any) -> List[float]:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"{key} must be 'min, max', got {value!r}")
        lo, hi = float(value[0]), float(value[1])
        if not hi > lo:
            raise ValueError(f"{key} must have max > min, got {value!r}")
        return [lo, hi]
