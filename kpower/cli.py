#!/usr/bin/env python3
"""
Command-line entry point for kpower.

Options given on the command line override the matching values of a
configuration file passed with --config.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analysis.pipeline import run_kpower
from .config_loader import (
    build_configuration, create_example_toml_config, create_example_yaml_config,
    load_config_data
)
from .core.constants import (
    CRITERIA, DEFAULT_BASE_MODEL, DEFAULT_CRITERION, DEFAULT_K_MIN, DEFAULT_MIX_TYPE,
    DEFAULT_N_CORES, DEFAULT_REPLICATES, DEFAULT_SEED, DEFAULT_TREE_MODE, VERSION
)
from .core.progress_logger import ProgressLogger
from .core.utils import setup_logging
from .exceptions import ConfigurationError, KPowerError, PipelineStageError
from .external_tools.tool_locator import check_iqtree

logger = logging.getLogger(__name__)

# argparse dest -> (config section, field)
OPTION_MAP = {
    'alignment': ('input_output', 'alignment_file'),
    'outdir': ('input_output', 'output_dir'),
    'format': ('input_output', 'alignment_format'),
    'figure_format': ('input_output', 'figure_format'),
    'log_file': ('input_output', 'log_file'),
    'model': ('model', 'base_model'),
    'mix_type': ('model', 'mix_type'),
    'k_min': ('model', 'k_min'),
    'k_max': ('model', 'k_max'),
    'ic': ('model', 'criterion'),
    'tree_mode': ('model', 'tree_mode'),
    'fixed_tree': ('model', 'fixed_tree'),
    'replicates': ('simulation', 'replicates'),
    'seed': ('simulation', 'seed'),
    'replay_variant': ('simulation', 'replay_variant'),
    'iqtree': ('computational', 'iqtree_path'),
    'threads': ('computational', 'threads'),
    'n_cores': ('computational', 'n_cores'),
    'timeout': ('computational', 'fit_timeout'),
    'sim_timeout': ('computational', 'simulation_timeout'),
    'missing_policy': ('computational', 'missing_policy'),
}


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="kpower",
        description=f"kpower v{VERSION}: parametric-bootstrap power to recover the number of "
                    f"mixture categories (K) with IQ-TREE and AliSim.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        argument_default=None
    )

    parser.add_argument("alignment", nargs='?', help="Empirical alignment (can be specified in config file).")
    parser.add_argument("--config", help="YAML, TOML or INI configuration file.")
    parser.add_argument("--version", action="version", version=f"kpower {VERSION}")

    model_opts = parser.add_argument_group('Model Specification')
    model_opts.add_argument("--k-min", type=int, help=f"Smallest K (default: {DEFAULT_K_MIN}).")
    model_opts.add_argument("--k-max", type=int, help="Largest K (required unless set in config).")
    model_opts.add_argument("--model", help=f"Base substitution model (default: {DEFAULT_BASE_MODEL}).")
    model_opts.add_argument("--mix-type", choices=["+R", "+H"],
                            help=f"Mixture family (default: {DEFAULT_MIX_TYPE}).")
    model_opts.add_argument("--ic", choices=list(CRITERIA),
                            help=f"Information criterion used to select K (default: {DEFAULT_CRITERION}).")
    model_opts.add_argument("--tree-mode", choices=["nj", "fixed", "search"],
                            help=f"nj: fixed BIONJ tree per fit, fixed: --fixed-tree for every fit, "
                                 f"search: full tree search (default: {DEFAULT_TREE_MODE}).")
    model_opts.add_argument("--fixed-tree", help="Newick tree file for --tree-mode fixed.")

    sim_opts = parser.add_argument_group('Parametric Bootstrap')
    sim_opts.add_argument("-B", "--replicates", type=int,
                          help=f"Number of simulated alignments (default: {DEFAULT_REPLICATES}).")
    sim_opts.add_argument("--seed", type=int, help=f"AliSim random seed (default: {DEFAULT_SEED}).")
    sim_opts.add_argument("--no-mimic-gaps", action="store_true",
                          help="Do not copy the empirical gap pattern into simulated alignments.")
    sim_opts.add_argument("--replay-variant", choices=["plain", "gap_reproducing"],
                          help="Which AliSim command to take from the IQ-TREE report.")
    sim_opts.add_argument("--missing-policy", choices=["exclude", "non_match"],
                          help="Replicates lacking the criterion: drop them or count them as misses.")
    sim_opts.add_argument("--fail-fast", action="store_true",
                          help="Abort on the first failed replicate instead of skipping it.")

    run_ctrl = parser.add_argument_group('Runtime Control')
    run_ctrl.add_argument("--outdir", help="Output directory (default: kpower_output).")
    run_ctrl.add_argument("--format", choices=["fasta", "phylip-relaxed", "nexus"],
                          help="Alignment format (default: guessed from the extension).")
    run_ctrl.add_argument("--iqtree", help="IQ-TREE executable (default: iqtree3, iqtree2 or iqtree on PATH).")
    run_ctrl.add_argument("--threads", help="IQ-TREE -T value (default: --n-cores).")
    run_ctrl.add_argument("--n-cores", type=int,
                          help=f"Parallel workers for replicate refits (default: {DEFAULT_N_CORES}).")
    run_ctrl.add_argument("--timeout", type=int, help="Timeout per model fit in seconds.")
    run_ctrl.add_argument("--sim-timeout", type=int, help="Timeout for the AliSim run in seconds.")
    run_ctrl.add_argument("--check-iqtree", action="store_true", help="Locate IQ-TREE, print its version and exit.")

    out_opts = parser.add_argument_group('Output')
    out_opts.add_argument("--no-plot", action="store_true", help="Skip the criterion profile figure.")
    out_opts.add_argument("--figure-format", choices=["png", "pdf", "svg"], help="Figure format.")
    out_opts.add_argument("--log-file", help="Write detailed debug log to this file.")
    out_opts.add_argument("--no-progress", action="store_true", help="Disable the overwriting progress line.")
    out_opts.add_argument("--debug", action="store_true", help="Enable debug logging.")
    out_opts.add_argument("--generate-config", metavar="PATH",
                          help="Write an example configuration (.yaml or .toml) and exit.")

    return parser


def merge_arguments(args: argparse.Namespace, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Overlay command-line options on configuration file sections.

    Args:
        args: Parsed command-line arguments
        data: Sections loaded from --config, if any

    Returns:
        Nested configuration dictionary
    """
    merged: Dict[str, Dict[str, Any]] = {name: dict(section) for name, section in (data or {}).items()
                                         if isinstance(section, dict)}
    for section in ('input_output', 'model', 'simulation', 'computational'):
        merged.setdefault(section, {})

    for dest, (section, field) in OPTION_MAP.items():
        value = getattr(args, dest, None)
        if value is not None:
            merged[section][field] = value

    if args.fixed_tree is not None and 'tree_mode' not in merged['model']:
        merged['model']['tree_mode'] = "fixed"
    if args.no_mimic_gaps:
        merged['simulation']['mimic_gaps'] = False
    if args.fail_fast:
        merged['computational']['isolate_failures'] = False
    if args.no_plot:
        merged['input_output']['make_plot'] = False
    if args.debug:
        merged['input_output']['debug'] = True

    return merged


def generate_config(path: str) -> None:
    if Path(path).suffix.lower() == '.toml':
        create_example_toml_config(path)
    else:
        create_example_yaml_config(path)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for kpower."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug, args.log_file)

    if args.generate_config:
        generate_config(args.generate_config)
        print(f"Example configuration written to {args.generate_config}")
        return 0

    if args.check_iqtree:
        try:
            print(check_iqtree(args.iqtree))
        except KPowerError as e:
            logger.error(str(e))
            return 1
        return 0

    try:
        data = load_config_data(args.config) if args.config else None
        merged = merge_arguments(args, data)
        if not merged['input_output'].get('alignment_file'):
            logger.error("Error: Alignment file is required (either as positional argument or in config file)")
            parser.print_help()
            return 1
        if merged['model'].get('k_max') is None:
            logger.error("Error: --k-max is required (either on the command line or in config file)")
            return 1
        config = build_configuration(merged, source=args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if config.input_output.log_file and not args.log_file:
        setup_logging(config.input_output.debug, config.input_output.log_file)

    progress = ProgressLogger(show_progress=not args.no_progress, verbose=config.input_output.debug)

    try:
        result = run_kpower(config, progress=progress)
    except PipelineStageError as e:
        logger.error(f"kpower failed during {e.stage}"
                     + (f" ({e.label})" if e.label else "") + f": {e.__cause__ or e}")
        if args.debug:
            import traceback
            logger.debug("Full traceback:\n%s", traceback.format_exc())
        return 1
    except (KPowerError, OSError) as e:
        logger.error(f"kpower analysis failed: {e}")
        return 1

    print(result.summary())
    if result.figure_path:
        print(f"  Figure   : {result.figure_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
