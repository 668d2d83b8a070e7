#!/usr/bin/env python
"""
Command Line Interface for timbang Conservative Remap Verification.

Usage:
    timbang case1              # Conservative, 2D cosine hill cycling
    timbang case2              # Conservative, 3D linear field
    timbang case3              # Inverse distance, 2D
    timbang case4              # First-order conservative, 2D
    timbang --all              # Run all cases
    timbang --config path.txt  # Custom config
"""

import argparse
import sys
from pathlib import Path

from .core.mesh import box_mesh
from .core.analytic import parse_test_kind
from .core.mapper import OverlapMeshMapper, parse_method
from .core.remap import RemapDriver
from .core.harness import CyclicStabilityTester, run_mapping_error_test
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler
from .io.field_store import FieldStore
from .visualization.plotter import FieldPlotter
from .utils.logger import RemapLogger
from .utils.timer import Timer


def print_header():
    """Print ASCII art header."""
    print("\n" + "=" * 70)
    print(" " * 10 + "timbang: Conservative Remap Verification Harness")
    print(" " * 25 + "Version 0.1.0")
    print("=" * 70)
    print("\n  Analytic Test Fields | Conservation Drift | Cyclic Stability")
    print("  Exact Box Overlap | Gradient Correction | Inverse Distance")
    print("  License: MIT")
    print("=" * 70 + "\n")


def normalize_scenario_name(scenario_name: str) -> str:
    """Convert scenario name to clean filename format."""
    clean = scenario_name.lower()
    clean = clean.replace(' - ', '_')
    clean = clean.replace('-', '_')
    clean = clean.replace(' ', '_')

    while '__' in clean:
        clean = clean.replace('__', '_')

    clean = clean.rstrip('_')
    return clean


def build_meshes(config: dict):
    """Source and target box meshes from a validated configuration."""
    lower = (config['x_range'][0], config['y_range'][0], config['z_range'][0])
    upper = (config['x_range'][1], config['y_range'][1], config['z_range'][1])

    source = box_mesh(
        config['source_nx'], config['source_ny'], config['source_nz'],
        lower, upper, name="source"
    )
    target = box_mesh(
        config['target_nx'], config['target_ny'], config['target_nz'],
        lower, upper, name="target"
    )
    return source, target


def _prefixed(prefix: str, metrics: dict) -> dict:
    return {f'{prefix}{k}': v for k, v in metrics.items()}


def _run_tests(config, source_mesh, target_mesh, case_dir, output_dir,
               clean_name, logger, timer, verbose):
    """Mapping error test and (2D meshes) cyclic stability test."""
    method = parse_method(config['method'], "run configuration")
    test_kind = parse_test_kind(config['test_kind'], "run configuration")
    cyclic_kind = parse_test_kind(config['cyclic_kind'], "run configuration")

    mapper_options = {'cache_dir': config.get('cache_dir', 'cache')}
    metrics = {'method': method.name}
    results = []

    # [2/5] Mapping error test
    with timer.time_section("mapping_error_test"):
        if verbose:
            print(f"\n[2/5] Mapping error test ({test_kind.name})...")

        mapping = run_mapping_error_test(
            source_mesh, target_mesh, test_kind, method,
            n_threads=config['n_threads'],
            force_recalc=config['force_recalc'],
            write_addr=config['write_addr'],
            mapper_options=mapper_options,
            source_store=FieldStore(case_dir / "mapping" / "source"),
            target_store=FieldStore(case_dir / "mapping" / "target"),
            logger=logger,
            verbose=verbose,
        )
        metrics.update(_prefixed('mapping_', mapping.as_dict()))
        results.append(('mapping', mapping))

        if verbose:
            print(f"      Target L2 error: {mapping.target_error.l2_error:.6e}")
            print(f"      Target Linf error: {mapping.target_error.linf_error:.6e}")
            print(f"      Relative drift: {mapping.conservation.relative_drift:.2e}")

    # [3/5] Cyclic stability test
    with timer.time_section("cyclic_test"):
        if verbose:
            print(f"\n[3/5] Cyclic stability test ({cyclic_kind.name})...")

        if source_mesh.n_geometric_dims == 2:
            tester = CyclicStabilityTester(
                source_mesh, target_mesh,
                n_threads=config['n_threads'],
                force_recalc=config['force_recalc'],
                write_addr=config['write_addr'],
                source_store=FieldStore(case_dir / "cyclic" / "source"),
                target_store=FieldStore(case_dir / "cyclic" / "target"),
                logger=logger,
                verbose=verbose,
                mapper_options=mapper_options,
            )
            cyclic = tester.run(config['n_cycles'], cyclic_kind, method)
            logger.log_cyclic_result(cyclic)
            metrics.update(_prefixed('cyclic_', cyclic.as_dict()))
            results.append(('cyclic', cyclic))

            csv_file = Path(output_dir) / "csv" / f"{clean_name}_cycles.csv"
            DataHandler.save_cycle_history_csv(
                str(csv_file), cyclic.drift_history, cyclic.conservation.source_integral,
                cyclic.conservation.source_magnitude
            )
            if verbose:
                print(f"      Saved: {csv_file}")
        elif verbose:
            print(f"      Skipped: source mesh is {source_mesh.n_geometric_dims}D")

    return metrics, results


def _run_production(config, source_mesh, target_mesh, output_dir, logger, timer, verbose):
    """Remap every field of the source case onto the target case."""
    method = parse_method(config['method'], "run configuration")
    source_store = FieldStore(config['source_case'])
    target_store = FieldStore(config['target_case'])

    with timer.time_section("mapping_fields"):
        if verbose:
            print("\n[2/5] Mapping fields...")

        time_name = source_store.select_time(float(config['time']))
        logger.info(f"Source time: {time_name}")

        mapper = OverlapMeshMapper(
            source_mesh, target_mesh,
            n_threads=config['n_threads'],
            force_recalc=config['force_recalc'],
            write_addr=config['write_addr'],
            cache_dir=config.get('cache_dir', 'cache'),
            verbose=verbose,
        )
        driver = RemapDriver(target_store, logger, verbose, config['drift_warning'])
        reports = driver.map_all_fields(mapper, source_store, time_name, method)

    metrics = {'method': method.name}
    for name, report in reports.items():
        metrics.update(report.as_dict(f'{name}_'))

    if verbose:
        print("\n[3/5] Cyclic stability test skipped (production mapping)")

    return metrics, []


def run_case(
    config: dict,
    output_dir: str = "outputs",
    verbose: bool = True
):
    """Run one remap verification scenario and return its flat metrics."""
    config = ConfigManager.with_defaults(config)
    ConfigManager.validate_config(config)

    scenario_name = config.get('scenario_name', 'remap')
    clean_name = normalize_scenario_name(scenario_name)

    if verbose:
        print(f"\n{'=' * 70}")
        print(f"SCENARIO: {scenario_name}")
        print(f"{'=' * 70}")

    logger = RemapLogger(clean_name, str(Path(output_dir) / "logs"), verbose)
    timer = Timer()
    timer.start("total")

    try:
        # [1/5] Meshes
        with timer.time_section("mesh_init"):
            if verbose:
                print("\n[1/5] Building meshes...")

            source_mesh, target_mesh = build_meshes(config)
            logger.log_meshes(source_mesh, target_mesh)
            logger.log_config(config)

            if verbose:
                print(f"      Source: {source_mesh}")
                print(f"      Target: {target_mesh}")

        if config['test_only']:
            case_dir = Path(output_dir) / "cases" / clean_name
            metrics, results = _run_tests(
                config, source_mesh, target_mesh, case_dir, output_dir,
                clean_name, logger, timer, verbose
            )
        else:
            metrics, results = _run_production(
                config, source_mesh, target_mesh, output_dir, logger, timer, verbose
            )

        # [4/5] Save CSV and NetCDF data
        with timer.time_section("data_save"):
            if verbose:
                print("\n[4/5] Saving metrics...")

            csv_file = Path(output_dir) / "csv" / f"{clean_name}_diagnostics.csv"
            DataHandler.save_diagnostics_csv(str(csv_file), metrics)
            if verbose:
                print(f"      Saved: {csv_file}")

            for label, result in results:
                nc_file = Path(output_dir) / "netcdf" / f"{clean_name}_{label}.nc"
                DataHandler.save_netcdf(str(nc_file), result, config)
                if verbose:
                    print(f"      Saved: {nc_file}")

        # [5/5] Figures
        with timer.time_section("visualization"):
            if verbose:
                print("\n[5/5] Generating figures...")

            if config['save_plot'] and results:
                plotter = FieldPlotter(dpi=120)
                for label, result in results:
                    png_file = Path(output_dir) / "figs" / f"{clean_name}_{label}.png"
                    plotter.create_summary_plot(result, str(png_file))
                    if verbose:
                        print(f"      Saved: {png_file}")
            elif verbose:
                print("      Skipped")

        timer.stop("total")
        logger.log_timing(timer.get_times())

        if verbose:
            print(f"\n{'=' * 70}")
            print("RUN COMPLETED")
            print(f"{'=' * 70}")
            for key in ('mapping_drift_relative', 'mapping_target_l2_error',
                        'cyclic_drift_relative', 'cyclic_target_l2_error'):
                if key in metrics:
                    print(f"  {key}: {metrics[key]:.4e}")
            print(f"  Total time: {timer.times.get('total', 0):.2f} s")
            print(f"{'=' * 70}\n")

        return metrics

    except Exception as e:
        logger.error(f"Run failed: {str(e)}")

        if verbose:
            print(f"\n{'=' * 70}")
            print(f"RUN FAILED: {str(e)}")
            print(f"{'=' * 70}\n")

        raise

    finally:
        logger.finalize()


def _apply_overrides(config: dict, args) -> dict:
    if args.method is not None:
        config['method'] = args.method
    if args.threads is not None:
        config['n_threads'] = args.threads
    if args.force_recalc:
        config['force_recalc'] = True
    if args.write_addr:
        config['write_addr'] = True
    if args.test_only:
        config['test_only'] = True
    if args.cycles is not None:
        config['n_cycles'] = args.cycles
    if args.no_plot:
        config['save_plot'] = False
    return config


def main(argv=None):
    """Main entry point for command-line interface."""
    parser = argparse.ArgumentParser(
        description='timbang: Conservative Remap Verification Harness',
        epilog='Example: timbang case1'
    )

    parser.add_argument(
        'case',
        nargs='?',
        choices=['case1', 'case2', 'case3', 'case4'],
        help='Test case to run (case1-4)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to custom configuration file'
    )

    parser.add_argument(
        '--all', '-a',
        action='store_true',
        help='Run all test cases sequentially'
    )

    parser.add_argument(
        '--method', '-m',
        type=str,
        help='Interpolation method (conservative, inverse_distance, conservative_first_order)'
    )

    parser.add_argument(
        '--threads', '-n',
        type=int,
        help='Threads for the neighbour search (-1 = all cores)'
    )

    parser.add_argument(
        '--force-recalc',
        action='store_true',
        help='Ignore cached overlap addressing'
    )

    parser.add_argument(
        '--write-addr',
        action='store_true',
        help='Save overlap addressing to the cache directory'
    )

    parser.add_argument(
        '--test-only',
        action='store_true',
        help='Run the analytic tests instead of mapping stored fields'
    )

    parser.add_argument(
        '--cycles',
        type=int,
        help='Number of remap cycles for the stability test'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default='outputs',
        help='Output directory for results (default: outputs)'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Quiet mode (minimal output)'
    )

    parser.add_argument(
        '--no-plot',
        action='store_true',
        help='Skip figure generation'
    )

    args = parser.parse_args(argv)
    verbose = not args.quiet

    if verbose:
        print_header()

    try:
        # Custom config
        if args.config:
            config = _apply_overrides(ConfigManager.load(args.config), args)
            run_case(config, args.output_dir, verbose)

        # All cases
        elif args.all:
            comparison = {}
            for case_num in range(1, 5):
                case_name = f'case{case_num}'
                config = _apply_overrides(ConfigManager.get_default_config(case_name), args)
                comparison[case_name] = run_case(config, args.output_dir, verbose)

            csv_file = Path(args.output_dir) / "csv" / "comparison.csv"
            DataHandler.save_comparison_csv(str(csv_file), comparison)
            if verbose:
                print(f"Saved: {csv_file}")

        # Single case
        elif args.case:
            config = _apply_overrides(ConfigManager.get_default_config(args.case), args)
            run_case(config, args.output_dir, verbose)

        else:
            parser.print_help()
            sys.exit(0)

    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
