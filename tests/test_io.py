"""
Tests for timbang I/O, utilities and the command line interface.

Run with: pytest tests/ -v
"""

import numpy as np
import pandas as pd
import pytest
import tempfile
from pathlib import Path
from netCDF4 import Dataset

from timbang import (
    TestFieldKind,
    UnknownTestKindError,
    UnknownMethodError,
    ScalarField,
    VectorField,
    box_mesh,
    build_test_field,
    run_mapping_error_test,
    CyclicStabilityTester,
)
from timbang.cli import main, run_case, normalize_scenario_name, build_meshes
from timbang.core.fields import READ_LOADED
from timbang.io.config_manager import ConfigManager
from timbang.io.data_handler import DataHandler
from timbang.io.field_store import FieldStore, nearest_time_index
from timbang.utils.logger import RemapLogger
from timbang.utils.timer import Timer
from timbang.visualization.plotter import FieldPlotter


class TestFieldStore:
    """Test NetCDF persistence of fields."""

    def test_scalar_roundtrip(self, unit_cube_8, tmp_path):
        """Test scalar field write and read."""
        store = FieldStore(tmp_path)
        scalar, _ = build_test_field(unit_cube_8, TestFieldKind.SINUSOID_3D)
        path = store.write(scalar)

        assert path == tmp_path / "0" / "alpha.nc"
        assert scalar.written

        loaded = store.read("alpha", "0", unit_cube_8)
        assert isinstance(loaded, ScalarField)
        assert not isinstance(loaded, VectorField)
        assert loaded.read_state == READ_LOADED
        assert loaded.boundary_type == "fixedValue"
        np.testing.assert_array_equal(loaded.internal, scalar.internal)
        for name, values in scalar.boundary.items():
            np.testing.assert_array_equal(loaded.boundary[name], values)

    def test_vector_roundtrip(self, unit_cube_8, tmp_path):
        """Test vector field write and read."""
        store = FieldStore(tmp_path)
        _, grad = build_test_field(unit_cube_8, TestFieldKind.LINEAR, time_name="0.5")
        store.write(grad)

        loaded = store.read("grad(alpha)", "0.5", unit_cube_8)
        assert isinstance(loaded, VectorField)
        assert loaded.boundary_type == "zeroGradient"
        np.testing.assert_array_equal(loaded.internal, grad.internal)

    def test_header_ok(self, unit_cube_8, tmp_path):
        """Test header checks for missing, broken and mismatched files."""
        store = FieldStore(tmp_path)
        assert not store.header_ok("alpha", "0")

        scalar, _ = build_test_field(unit_cube_8, TestFieldKind.LINEAR)
        store.write(scalar)
        assert store.header_ok("alpha", "0")
        assert store.header_ok("alpha", "0", unit_cube_8)
        assert not store.header_ok("alpha", "0", box_mesh(3, 1, 1))
        assert not store.header_ok("alpha", "1")

        (tmp_path / "0" / "broken.nc").write_text("not a netcdf file")
        assert not store.header_ok("broken", "0")
        assert set(store.list_fields("0")) == {"alpha"}

    def test_read_missing(self, unit_cube_8, tmp_path):
        """Test reading a missing field."""
        with pytest.raises(FileNotFoundError):
            FieldStore(tmp_path).read("alpha", "0", unit_cube_8)

    def test_times(self, tmp_path):
        """Test time ordering and nearest time selection."""
        for name in ("constant", "10", "0.5", "0", "2"):
            (tmp_path / name).mkdir()
        (tmp_path / "notes.txt").write_text("")

        store = FieldStore(tmp_path)
        assert store.times() == ["0", "0.5", "2", "10", "constant"]
        assert store.select_time(0.6) == "0.5"
        assert store.select_time(7.0) == "10"

    def test_select_time_empty(self, tmp_path):
        """Test time selection without time directories."""
        with pytest.raises(FileNotFoundError):
            FieldStore(tmp_path / "missing").select_time(0.0)

    def test_nearest_time_index(self):
        """Test nearest index skips non-numeric names."""
        times = ["constant", "0", "0.5", "1"]
        assert nearest_time_index(times, 0.6) == 2
        assert nearest_time_index(times, -4.0) == 1
        assert nearest_time_index(times, 100.0) == 3
        assert nearest_time_index(["constant"], 0.0) == -1
        assert nearest_time_index([], 0.0) == -1


class TestConfigManager:
    """Test configuration management."""

    def test_load_config(self):
        """Test loading configuration from file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("# Test config\n")
            f.write("scenario_name = Test Run\n")
            f.write("source_nx = 12\n")
            f.write("x_range = -1.0, 1.0   # domain\n")
            f.write("method = conservative\n")
            f.write("drift_warning = 1e-9\n")
            f.write("force_recalc = true\n")
            f.write("\n")
            config_path = f.name

        config = ConfigManager.load(config_path)

        assert config['scenario_name'] == 'Test Run'
        assert config['source_nx'] == 12
        assert config['x_range'] == [-1.0, 1.0]
        assert config['method'] == 'conservative'
        assert config['drift_warning'] == 1e-9
        assert config['force_recalc'] is True

        Path(config_path).unlink()

    def test_load_rejects_bad_line(self, tmp_path):
        """Test lines without '=' are rejected."""
        path = tmp_path / "bad.txt"
        path.write_text("source_nx 12\n")
        with pytest.raises(ValueError):
            ConfigManager.load(str(path))

    def test_all_default_configs(self):
        """Test all default case configurations are valid."""
        for case in ['case1', 'case2', 'case3', 'case4']:
            config = ConfigManager.get_default_config(case)
            assert 'scenario_name' in config
            assert ConfigManager.validate_config(config)

        with pytest.raises(ValueError):
            ConfigManager.get_default_config('case9')

    def test_default_configs_are_copies(self):
        """Test default configs are independent copies."""
        first = ConfigManager.get_default_config('case1')
        first['x_range'][0] = 99.0
        second = ConfigManager.get_default_config('case1')
        assert second['x_range'][0] == -1.0

    def test_save_config(self, tmp_path):
        """Test saving configuration to file."""
        config = ConfigManager.get_default_config('case3')
        config_path = tmp_path / "case3.txt"

        ConfigManager.save(config, str(config_path))
        loaded = ConfigManager.load(str(config_path))

        assert loaded == config

    def test_validate_missing(self, small_config):
        """Test missing keys are reported."""
        del small_config['method']
        with pytest.raises(ValueError, match="method"):
            ConfigManager.validate_config(small_config)

    def test_validate_unknown_method(self, small_config):
        """Test unknown method fails validation."""
        small_config['method'] = 'bilinear'
        with pytest.raises(UnknownMethodError):
            ConfigManager.validate_config(small_config)

    def test_validate_unknown_kind(self, small_config):
        """Test unknown kind fails validation."""
        small_config['cyclic_kind'] = 'gaussian'
        with pytest.raises(UnknownTestKindError):
            ConfigManager.validate_config(small_config)

    @pytest.mark.parametrize("key, value", [
        ('source_nx', 0),
        ('target_ny', 2.5),
        ('x_range', [1.0, -1.0]),
        ('z_range', 0.1),
        ('n_cycles', 0),
        ('n_threads', 0),
    ])
    def test_validate_bad_values(self, small_config, key, value):
        """Test out-of-range values fail validation."""
        small_config[key] = value
        with pytest.raises(ValueError):
            ConfigManager.validate_config(small_config)


class TestDataHandler:
    """Test CSV and NetCDF output."""

    def test_save_diagnostics_csv(self, tmp_path):
        """Test diagnostics CSV and units."""
        diagnostics = {
            'mapping_drift_relative': 1e-15,
            'mapping_target_l2_error': 2e-3,
            'cyclic_n_cycles': 250,
            'method': 'CONSERVATIVE',
        }
        filepath = tmp_path / "diag.csv"
        DataHandler.save_diagnostics_csv(str(filepath), diagnostics)

        df = pd.read_csv(filepath)
        assert list(df.columns) == ['Metric', 'Value', 'Units']
        assert len(df) == 3
        units = dict(zip(df['Metric'], df['Units']))
        assert units['mapping_drift_relative'] == 'dimensionless'
        assert units['mapping_target_l2_error'] == 'field'
        assert units['cyclic_n_cycles'] == 'count'

    def test_save_cycle_history_csv(self, tmp_path):
        """Test cycle history CSV."""
        filepath = tmp_path / "cycles.csv"
        DataHandler.save_cycle_history_csv(str(filepath), np.array([1e-16, 2e-16, 4e-16]), 2.0)

        df = pd.read_csv(filepath)
        assert list(df['cycle']) == [1, 2, 3]
        np.testing.assert_allclose(df['drift_relative'], [5e-17, 1e-16, 2e-16])

    def test_cycle_history_zero_mean_field(self, tmp_path):
        """Test relative cycle drift uses the field magnitude when I₀ cancels."""
        filepath = tmp_path / "cycles.csv"
        DataHandler.save_cycle_history_csv(
            str(filepath), np.array([1e-18, 2e-18]), 1e-19, source_magnitude=0.5
        )

        df = pd.read_csv(filepath)
        np.testing.assert_allclose(df['drift_relative'], [2e-18, 4e-18])

    def test_save_comparison_csv(self, tmp_path):
        """Test comparison CSV across cases."""
        filepath = tmp_path / "comparison.csv"
        DataHandler.save_comparison_csv(str(filepath), {
            'case1': {'method': 'CONSERVATIVE', 'mapping_target_l2_error': 1e-3},
            'case2': {'method': 'INVERSE_DISTANCE'},
        })

        df = pd.read_csv(filepath)
        assert list(df['Case']) == ['case1', 'case2']
        assert np.isnan(df['Cyclic L2'][0])

    def test_save_netcdf(self, pair_2d, tmp_path):
        """Test gridded NetCDF output."""
        source_mesh, target_mesh = pair_2d
        result = CyclicStabilityTester(source_mesh, target_mesh, verbose=False).run(
            3, TestFieldKind.COSINE_HILL_2D
        )
        filepath = tmp_path / "cyclic.nc"
        DataHandler.save_netcdf(str(filepath), result, {'scenario_name': 'Test'})

        with Dataset(filepath, 'r') as nc:
            assert nc.variables['source_alpha'].shape == (1, 10, 10)
            assert nc.variables['target_iError'].shape == (1, 11, 13)
            assert nc.variables['drift'].shape == (3,)
            assert 'diag_target_l2_error' in nc.variables
            assert nc.scenario_name == 'Test'
            np.testing.assert_allclose(
                np.array(nc.variables['target_alpha'][:]).ravel(),
                result.target_field.internal
            )


class TestLogger:
    """Test run logging."""

    def test_log_file(self, pair_2d, tmp_path):
        """Test log file sections and counters."""
        source_mesh, target_mesh = pair_2d
        logger = RemapLogger("Test Run", str(tmp_path), verbose=False)
        logger.log_meshes(source_mesh, target_mesh)
        logger.log_config({'method': 'conservative', 'n_cycles': 3})

        result = run_mapping_error_test(
            source_mesh, target_mesh, TestFieldKind.LINEAR, logger=logger, verbose=False
        )
        logger.warning("drift above threshold")
        logger.error("something failed")
        logger.log_timing({'total': 1.5, 'mapping': 1.0})
        logger.finalize()

        assert logger.log_file == tmp_path / "test_run.log"
        text = logger.log_file.read_text()
        assert "SOURCE MESH" in text
        assert "CONSERVATION (alpha)" in text
        assert "ERROR (target)" in text
        assert "WARNINGS: 1" in text
        assert "ERRORS: 1" in text
        assert logger.warnings == ["drift above threshold"]
        assert result.target_error.l2_error < 1e-10

    def test_cyclic_result(self, pair_2d, tmp_path):
        """Test cyclic section in the log."""
        source_mesh, target_mesh = pair_2d
        logger = RemapLogger("cyclic", str(tmp_path), verbose=False)
        result = CyclicStabilityTester(
            source_mesh, target_mesh, logger=logger, verbose=False
        ).run(2, TestFieldKind.COSINE_HILL_2D)
        logger.log_cyclic_result(result)
        logger.finalize()

        text = logger.log_file.read_text()
        assert "CYCLIC STABILITY" in text
        assert "Cycles: 2" in text


class TestTimer:
    """Test section timing."""

    def test_sections(self):
        """Test timed sections."""
        timer = Timer()
        with timer.time_section("a"):
            sum(range(1000))
        timer.start("b")
        elapsed = timer.stop("b")

        times = timer.get_times()
        assert set(times) == {"a", "b"}
        assert times["b"] == elapsed
        assert all(t >= 0.0 for t in times.values())

    def test_accumulates(self):
        """Test repeated sections accumulate."""
        timer = Timer()
        for _ in range(3):
            with timer.time_section("loop"):
                pass
        assert len(timer.get_times()) == 1

    def test_stop_without_start(self):
        """Test stopping an unknown section."""
        with pytest.raises(KeyError):
            Timer().stop("never")


class TestPlotter:
    """Test summary figures."""

    def test_cyclic_summary(self, pair_2d, tmp_path):
        """Test summary plot for a cyclic result."""
        source_mesh, target_mesh = pair_2d
        result = CyclicStabilityTester(source_mesh, target_mesh, verbose=False).run(
            2, TestFieldKind.COSINE_HILL_2D
        )
        filepath = tmp_path / "figs" / "cyclic.png"
        FieldPlotter(dpi=50).create_summary_plot(result, str(filepath))
        assert filepath.exists()

    def test_mapping_summary(self, pair_2d, tmp_path):
        """Test summary plot for a mapping result."""
        source_mesh, target_mesh = pair_2d
        result = run_mapping_error_test(
            source_mesh, target_mesh, TestFieldKind.SINUSOID_2D, verbose=False
        )
        filepath = tmp_path / "mapping.png"
        FieldPlotter(dpi=50).create_summary_plot(result, str(filepath))
        assert filepath.exists()


class TestCLI:
    """Test the command line entry point."""

    def test_normalize_scenario_name(self):
        """Test scenario name normalization."""
        assert normalize_scenario_name("Case 1 - Conservative 2D") == "case_1_conservative_2d"

    def test_build_meshes(self, small_config):
        """Test mesh pair from a config."""
        source, target = build_meshes(small_config)
        assert source.shape == (6, 6, 1)
        assert target.shape == (7, 5, 1)
        assert source.total_volume == pytest.approx(target.total_volume)

    def test_run_case(self, small_config, tmp_path):
        """Test full test-mode run and its outputs."""
        metrics = run_case(small_config, str(tmp_path), verbose=False)

        assert metrics['method'] == 'CONSERVATIVE'
        assert metrics['mapping_target_l2_error'] < 1e-10
        assert metrics['mapping_drift_relative'] < 1e-10
        assert metrics['cyclic_drift_relative'] < 1e-10
        assert (tmp_path / "csv" / "test_run_diagnostics.csv").exists()
        assert (tmp_path / "csv" / "test_run_cycles.csv").exists()
        assert (tmp_path / "netcdf" / "test_run_cyclic.nc").exists()
        assert (tmp_path / "logs" / "test_run.log").exists()
        assert FieldStore(tmp_path / "cases" / "test_run" / "cyclic" / "target").header_ok("alpha", "0")

    def test_run_case_3d_skips_cycles(self, small_config, tmp_path):
        """Test 3D source mesh skips the cyclic test."""
        small_config.update({'source_nz': 3, 'target_nz': 2, 'z_range': [0.0, 1.0]})
        metrics = run_case(small_config, str(tmp_path), verbose=False)
        assert 'mapping_target_l2_error' in metrics
        assert 'cyclic_drift_relative' not in metrics

    def test_run_case_production(self, small_config, tmp_path):
        """Test production mode on stored fields."""
        source_mesh, _ = build_meshes(small_config)
        source_store = FieldStore(tmp_path / "src_case")
        scalar, _ = build_test_field(source_mesh, TestFieldKind.COSINE_HILL_2D, time_name="1")
        velocity = VectorField.zeros(source_mesh, "U", time_name="1")
        velocity.internal[:] = 1.0
        source_store.write(scalar)
        source_store.write(velocity)

        small_config.update({
            'test_only': False,
            'source_case': str(tmp_path / "src_case"),
            'target_case': str(tmp_path / "tgt_case"),
            'time': 0.9,
        })
        metrics = run_case(small_config, str(tmp_path / "out"), verbose=False)

        assert metrics['alpha_drift_relative'] < 1e-12
        assert metrics['U_drift_relative'] < 1e-12
        target_store = FieldStore(tmp_path / "tgt_case")
        assert set(target_store.list_fields("1")) == {"alpha", "U"}

    def test_main_config_file(self, small_config, tmp_path):
        """Test main with a config file."""
        config_path = tmp_path / "run.txt"
        ConfigManager.save(small_config, str(config_path))

        main(['--config', str(config_path), '--cycles', '2', '--no-plot',
              '--quiet', '--output-dir', str(tmp_path / "out")])

        df = pd.read_csv(tmp_path / "out" / "csv" / "test_run_cycles.csv")
        assert len(df) == 2

    def test_main_unknown_method_exits(self, tmp_path):
        """Test unknown method exits with status 1."""
        with pytest.raises(SystemExit) as info:
            main(['case1', '--method', 'bilinear', '--quiet', '--output-dir', str(tmp_path)])
        assert info.value.code == 1

    def test_main_unknown_kind_exits(self, small_config, tmp_path):
        """Test unknown kind exits with status 1."""
        small_config['test_kind'] = 'paraboloid'
        config_path = tmp_path / "run.txt"
        ConfigManager.save(small_config, str(config_path))

        with pytest.raises(SystemExit) as info:
            main(['--config', str(config_path), '--quiet', '--output-dir', str(tmp_path)])
        assert info.value.code == 1

    def test_main_without_arguments(self):
        """Test main without arguments prints help."""
        with pytest.raises(SystemExit) as info:
            main(['--quiet'])
        assert info.value.code == 0
