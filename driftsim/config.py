"""Configuration system for driftSim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Sections map 1:1 to YAML top-level keys; unknown keys are ignored.
Defaults reproduce the documented example run
(f0=0.8, N0=100, Nt=200, t=10, n=6, mig=0.01, surv=0.1, litter=6).
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from driftsim.types import N_GENOTYPES, PAIRING_STRATEGIES, POPS_MODES

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control."""
    seed: Optional[int] = 42
    parallel_workers: int = 1      # thread pool size for per-population work
    pairing: str = "recycle"       # odd pools: 'recycle' (polygamy) or 'drop'


@dataclass
class DemographySection:
    """Bottleneck and growth parameters."""
    f0: float = 0.8          # Tracked-allele frequency in the focal population, pre-bottleneck
    N0: int = 100            # Breeding pairs per population, pre-bottleneck
    Nt: int = 200            # Breeding pairs after t generations
    t: int = 10              # Number of generations
    n: int = 6               # Number of populations (focal + n-1 neighbours)
    surv: float = 0.1        # Bottleneck survival probability
    litter: int = 6          # Offspring per breeding pair


@dataclass
class MigrationSection:
    """Inter-population migration."""
    mig: float = 0.01        # Fraction of each pool that leaves home per generation


@dataclass
class NeighbourSection:
    """Starting frequencies of the neighbouring populations.

    pops: "same"    — centred on f0
          "flip50"  — centred on 1.5 - f0 (reflected about 0.75)
          "flip100" — centred on 1 - f0
          "fixed"   — all 1
          "absent"  — all 0
    sd:   spread on the logit scale for the centred modes.
    """
    pops: str = "same"
    sd: float = 0.0


@dataclass
class SelectionSection:
    """Relative fitness of genotypes 0, 1, 2 (reference-allele dosage)."""
    geno_probs: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])


@dataclass
class DriftConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    demography: DemographySection = field(default_factory=DemographySection)
    migration: MigrationSection = field(default_factory=MigrationSection)
    neighbours: NeighbourSection = field(default_factory=NeighbourSection)
    selection: SelectionSection = field(default_factory=SelectionSection)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'demography': DemographySection,
    'migration': MigrationSection,
    'neighbours': NeighbourSection,
    'selection': SelectionSection,
}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def config_from_dict(data: Dict) -> DriftConfig:
    """Convert a (merged) YAML dict to a DriftConfig, without validation."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return DriftConfig(**sections)


def config_to_dict(config: DriftConfig) -> Dict:
    """Plain nested dict of a config, as it would appear in YAML."""
    return dataclasses.asdict(config)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: DriftConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Frequencies, rates and probabilities in range
      - Integer counts are integers of the right size
      - Neighbour mode and pairing strategy are known
      - Selection weights are usable for weighted sampling
    """
    d = config.demography
    if not 0.0 < d.f0 < 1.0:
        raise ValueError(f"demography.f0 must be in (0, 1), got {d.f0}")
    for name in ('N0', 'Nt', 't', 'n'):
        value = getattr(d, name)
        if not _is_int(value):
            raise ValueError(f"demography.{name} must be an integer, got {value!r}")
        if value < 1:
            raise ValueError(f"demography.{name} must be >= 1, got {value}")
    if not _is_int(d.litter) or d.litter < 3:
        raise ValueError(
            f"demography.litter must be an integer >= 3 for the population "
            f"to grow, got {d.litter!r}"
        )
    if not 0.0 < d.surv <= 1.0:
        raise ValueError(f"demography.surv must be in (0, 1], got {d.surv}")

    m = config.migration
    if not 0.0 <= m.mig < 1.0:
        raise ValueError(f"migration.mig must be in [0, 1), got {m.mig}")

    nb = config.neighbours
    if nb.pops not in POPS_MODES:
        raise ValueError(
            f"neighbours.pops must be one of {POPS_MODES}, got '{nb.pops}'"
        )
    if nb.sd < 0:
        raise ValueError(f"neighbours.sd must be >= 0, got {nb.sd}")
    if nb.pops == "flip50" and d.f0 < 0.5:
        raise ValueError(
            f"neighbours.pops='flip50' needs f0 >= 0.5 so that 1.5 - f0 is a "
            f"frequency, got f0={d.f0}"
        )

    gp = config.selection.geno_probs
    if len(gp) != N_GENOTYPES:
        raise ValueError(
            f"selection.geno_probs must have {N_GENOTYPES} entries, got {len(gp)}"
        )
    if any(not isinstance(w, (int, float)) or isinstance(w, bool) for w in gp):
        raise ValueError(f"selection.geno_probs must be numeric, got {gp}")
    if any(w < 0 for w in gp) or sum(gp) <= 0:
        raise ValueError(
            f"selection.geno_probs must be non-negative with a positive sum, got {gp}"
        )

    s = config.simulation
    if s.seed is not None and (not _is_int(s.seed) or s.seed < 0):
        raise ValueError(f"simulation.seed must be a non-negative integer, got {s.seed!r}")
    if not _is_int(s.parallel_workers) or s.parallel_workers < 1:
        raise ValueError(
            f"simulation.parallel_workers must be >= 1, got {s.parallel_workers!r}"
        )
    if s.pairing not in PAIRING_STRATEGIES:
        raise ValueError(
            f"simulation.pairing must be one of {PAIRING_STRATEGIES}, got '{s.pairing}'"
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> DriftConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)
        else:
            logger.warning("Scenario file not found, using base config only: %s",
                           scenario_path)

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def save_config(config: DriftConfig, path: Union[str, Path]) -> None:
    """Write a config as YAML (round-trips through load_config)."""
    with open(path, 'w') as f:
        yaml.safe_dump(config_to_dict(config), f, sort_keys=False)


def default_config() -> DriftConfig:
    """Return a DriftConfig with all default values."""
    config = DriftConfig()
    validate_config(config)
    return config
