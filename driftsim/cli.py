"""Command-line entry point: run drift simulations and print JSON results.

Usage:
    driftsim --f0 0.8 --N0 100 --Nt 200 -t 10 -n 6 --mig 0.01 --surv 0.1 --litter 6
    driftsim --config base.yaml --scenario flip.yaml --replicates 20 --seed 1
    python -m driftsim --config base.yaml --output results.json -v

Flags override values from the YAML files. A failed replicate (viability
or capacity error) is reported with its error instead of a result.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from driftsim.config import (
    config_from_dict,
    config_to_dict,
    default_config,
    deep_merge,
    load_config,
    validate_config,
)
from driftsim.model import run_drift_simulation
from driftsim.perf import PerfMonitor
from driftsim.types import PAIRING_STRATEGIES, POPS_MODES, DriftError

logger = logging.getLogger(__name__)

# flag dest → (section, key)
_OVERRIDES = {
    'f0': ('demography', 'f0'),
    'N0': ('demography', 'N0'),
    'Nt': ('demography', 'Nt'),
    't': ('demography', 't'),
    'n': ('demography', 'n'),
    'surv': ('demography', 'surv'),
    'litter': ('demography', 'litter'),
    'mig': ('migration', 'mig'),
    'pops': ('neighbours', 'pops'),
    'sd': ('neighbours', 'sd'),
    'geno_probs': ('selection', 'geno_probs'),
    'seed': ('simulation', 'seed'),
    'workers': ('simulation', 'parallel_workers'),
    'pairing': ('simulation', 'pairing'),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="driftsim",
        description="Simulate drift of a single bi-allelic locus across a "
                    "ring-with-hub network of populations.",
        epilog="Example: driftsim --f0 0.8 --N0 100 --Nt 200 -t 10 -n 6 "
               "--mig 0.01 --surv 0.1 --litter 6",
    )
    parser.add_argument("--config", type=str, default=None,
                        help="Base config YAML")
    parser.add_argument("--scenario", type=str, default=None,
                        help="Scenario YAML merged over the base config")

    demo = parser.add_argument_group("demography")
    demo.add_argument("--f0", type=float, help="Focal frequency pre-bottleneck")
    demo.add_argument("--N0", type=int, help="Breeding pairs pre-bottleneck")
    demo.add_argument("--Nt", type=int, help="Breeding pairs after t generations")
    demo.add_argument("-t", type=int, dest="t", help="Number of generations")
    demo.add_argument("-n", type=int, dest="n", help="Number of populations")
    demo.add_argument("--surv", type=float, help="Bottleneck survival rate")
    demo.add_argument("--litter", type=int, help="Offspring per pair")
    demo.add_argument("--mig", type=float, help="Migration rate")
    demo.add_argument("--pops", choices=POPS_MODES,
                      help="Neighbour starting-frequency mode")
    demo.add_argument("--sd", type=float,
                      help="Logit-scale spread of neighbour frequencies")
    demo.add_argument("--geno-probs", type=float, nargs=3, dest="geno_probs",
                      metavar=("W0", "W1", "W2"),
                      help="Relative fitness of genotypes 0, 1, 2")

    run = parser.add_argument_group("run control")
    run.add_argument("--seed", type=int, help="Master seed of the first replicate")
    run.add_argument("--replicates", type=int, default=1,
                     help="Replicates to run with seeds seed, seed+1, ... (default: 1)")
    run.add_argument("--workers", type=int, help="Threads for per-population work")
    run.add_argument("--pairing", choices=PAIRING_STRATEGIES,
                     help="Odd-pool pairing strategy")
    run.add_argument("--output", type=str, default=None,
                     help="Write JSON here instead of stdout")
    run.add_argument("--timing", action="store_true",
                     help="Include per-phase timings in the output")
    run.add_argument("-v", "--verbose", action="count", default=0,
                     help="-v for INFO, -vv for DEBUG logging")
    return parser


def _resolve_config(args: argparse.Namespace):
    if args.config is not None:
        config = load_config(args.config, scenario_path=args.scenario)
    else:
        config = default_config()

    overrides: Dict[str, Dict] = {}
    for dest, (section, key) in _OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    data = deep_merge(config_to_dict(config), overrides)
    config = config_from_dict(data)
    validate_config(config)
    return config


def run_replicates(config, replicates: int, timing: bool = False) -> List[dict]:
    """Run ``replicates`` simulations with consecutive seeds."""
    base_seed = config.simulation.seed
    records = []
    for k in range(replicates):
        rep_dict = config_to_dict(config)
        if base_seed is not None:
            rep_dict['simulation']['seed'] = base_seed + k
        rep_config = config_from_dict(rep_dict)
        perf = PerfMonitor(enabled=timing)

        record: dict = {'replicate': k, 'seed': rep_config.simulation.seed}
        try:
            result = run_drift_simulation(rep_config, perf=perf)
        except DriftError as exc:
            logger.warning("replicate %d failed: %s", k, exc)
            record['error'] = type(exc).__name__
            record['message'] = str(exc)
        else:
            record['result'] = result.as_dict()
        if timing:
            record['timing'] = perf.summary()
        records.append(record)
    return records


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.replicates < 1:
        parser.error("--replicates must be >= 1")
    try:
        config = _resolve_config(args)
    except (ValueError, FileNotFoundError) as exc:
        parser.error(str(exc))

    records = run_replicates(config, args.replicates, timing=args.timing)
    payload = {'config': config_to_dict(config), 'replicates': records}

    text = json.dumps(payload, indent=2, default=str)
    if args.output is not None:
        Path(args.output).write_text(text + "\n")
    else:
        print(text)

    return 0 if all('result' in r for r in records) else 1


if __name__ == "__main__":
    sys.exit(main())
