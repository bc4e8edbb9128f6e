"""Core data types for driftSim.

This module is the SINGLE SOURCE OF TRUTH for:
  - Genotype enumeration and genotype-array dtype
  - Valid neighbour-frequency modes and pairing strategies
  - The fatal error hierarchy (ViabilityError, CapacityError)
  - DriftResult, the summary returned by a simulation run

Genotype encoding: an individual's genotype is the number of reference
allele copies it carries at the locus (0, 1 or 2). Allele frequencies
reported by the simulation refer to the *tracked* allele, i.e. the other
one, so a population of all-0 genotypes has frequency 1.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Genotype(IntEnum):
    """Reference-allele dosage at the single diploid locus."""
    HOM_TRACKED = 0   # two copies of the tracked allele
    HET         = 1
    HOM_REF     = 2   # two copies of the reference allele


GENOTYPE_DTYPE = np.int8
N_GENOTYPES = len(Genotype)

FOCAL_POP = 0   # index of the central population in every per-population list

# How starting frequencies of the n-1 neighbouring populations are set
POPS_MODES = ("same", "flip50", "flip100", "fixed", "absent")

# How an odd-sized pool is turned into breeding pairs
PAIRING_STRATEGIES = ("recycle", "drop")


def as_genotypes(values) -> np.ndarray:
    """Coerce a sequence of genotypes to a flat GENOTYPE_DTYPE array.

    Raises:
        ValueError: If any value lies outside {0, 1, 2}.
    """
    arr = np.asarray(values, dtype=GENOTYPE_DTYPE).ravel()
    if arr.size and (arr.min() < 0 or arr.max() > 2):
        raise ValueError(
            f"genotypes must lie in {{0, 1, 2}}, got range "
            f"[{arr.min()}, {arr.max()}]"
        )
    return arr


def allele_frequency(pool: np.ndarray) -> float:
    """Frequency of the tracked allele in a pool of genotypes.

    mean(2 - g) / 2, so the result lies in [0, 1]. An empty pool has
    no defined frequency and returns NaN.
    """
    pool = np.asarray(pool)
    if pool.size == 0:
        return float('nan')
    return float(np.mean(2 - pool.astype(np.float64)) / 2.0)


# ═══════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════

class DriftError(RuntimeError):
    """Fatal, non-transient failure of a drift simulation run.

    Attributes:
        population: Index of the population that failed.
        generation: Generation (1-based) at which it failed; 0 = bottleneck.
        observed: Observed pool size.
        required: Size the pool needed to exceed (or reach).
    """

    def __init__(self, message: str, population: Optional[int] = None,
                 generation: Optional[int] = None,
                 observed: Optional[int] = None,
                 required: Optional[int] = None):
        super().__init__(message)
        self.population = population
        self.generation = generation
        self.observed = observed
        self.required = required


class ViabilityError(DriftError):
    """A population has fewer than 2 survivors after the bottleneck."""


class CapacityError(DriftError):
    """Breeding cannot supply the scheduled population size for a generation."""


# ═══════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class DriftResult:
    """Results from one drift simulation run.

    ``ft`` and ``n_eff`` describe the focal population (index 0); the
    remaining arrays cover every population, shape (n, t) unless noted.
    """
    ft: float = 0.0
    n_eff: Optional[np.ndarray] = None            # (t,) focal breeding-pair schedule
    n_pops: int = 0
    n_generations: int = 0
    f_start: Optional[np.ndarray] = None          # (n,) starting frequencies
    survivors: Optional[np.ndarray] = None        # (n,) post-bottleneck counts
    gen_sizes: Optional[np.ndarray] = None        # (n, t) breeding-pair targets
    pool_sizes: Optional[np.ndarray] = None       # (n, t) post-migration pool sizes
    freq_history: Optional[np.ndarray] = None     # (n, t) post-migration frequencies
    seed: Optional[int] = None
    pops: str = "same"

    def as_dict(self) -> dict:
        """Plain-Python view, suitable for JSON serialization."""
        def _list(arr):
            return None if arr is None else np.asarray(arr).tolist()
        return {
            'ft': float(self.ft),
            'nEff': _list(self.n_eff),
            'n_pops': self.n_pops,
            'n_generations': self.n_generations,
            'f_start': _list(self.f_start),
            'survivors': _list(self.survivors),
            'gen_sizes': _list(self.gen_sizes),
            'pool_sizes': _list(self.pool_sizes),
            'freq_history': _list(self.freq_history),
            'seed': self.seed,
            'pops': self.pops,
        }
