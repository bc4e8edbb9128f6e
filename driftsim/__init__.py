"""driftSim: genetic drift of a single bi-allelic locus across a population network.

A generational, individual-based simulation coupling:
  - A founding bottleneck with genotype-dependent survival
  - Exponential regrowth towards a target size
  - Mendelian breeding in pairs with fixed litter size
  - Migration on a ring of neighbouring populations around a focal hub
  - Optional selection among genotypes when breeders are chosen

Used to study how the focal population's allele frequency diverges from
its neighbours under demographic and migratory pressure.
"""

from driftsim.breeding import breed, breed_in_pairs
from driftsim.migration import MigrationMatrix, migrate, set_mig_probs
from driftsim.model import run_drift_simulation, sim_drift
from driftsim.types import CapacityError, DriftError, DriftResult, ViabilityError

__version__ = "0.1.0"

__all__ = [
    "CapacityError",
    "DriftError",
    "DriftResult",
    "MigrationMatrix",
    "ViabilityError",
    "breed",
    "breed_in_pairs",
    "migrate",
    "run_drift_simulation",
    "set_mig_probs",
    "sim_drift",
]
