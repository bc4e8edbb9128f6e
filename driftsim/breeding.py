"""Breeding and selection at the single diploid locus.

Core responsibilities:
  - Mendelian transmission for one breeding pair (``breed``)
  - Vectorized transmission for every pair of a population (``breed_in_pairs``)
  - Forming breeding pairs from a pool, with a polygamy fallback for odd
    pool sizes (``form_breeding_pairs``)
  - Fitness-weighted sampling without replacement (``select_weighted``)

A parent with genotype g transmits the reference allele with probability
g/2; an offspring's genotype is the sum of the two transmitted alleles.
Independent across offspring and across parents.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from driftsim.rng import DrawSource
from driftsim.types import (
    GENOTYPE_DTYPE,
    N_GENOTYPES,
    PAIRING_STRATEGIES,
    as_genotypes,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# MENDELIAN TRANSMISSION
# ═══════════════════════════════════════════════════════════════════════


def breed(pair, litter: int, rng: Optional[DrawSource] = None) -> np.ndarray:
    """Produce one litter from a single breeding pair.

    Args:
        pair: Two parental genotypes, each in {0, 1, 2}.
        litter: Number of offspring (L ≥ 0; the simulation uses L ≥ 3).
        rng: Draw source; a fresh default_rng() when omitted.

    Returns:
        (litter,) int8 offspring genotypes.
    """
    parents = as_genotypes(pair)
    if parents.size != 2:
        raise ValueError(f"a breeding pair needs 2 genotypes, got {parents.size}")
    if litter < 0:
        raise ValueError(f"litter must be >= 0, got {litter}")
    if rng is None:
        rng = np.random.default_rng()

    p_transmit = parents.astype(np.float64) * 0.5
    maternal = rng.binomial(1, p_transmit[0], size=litter)
    paternal = rng.binomial(1, p_transmit[1], size=litter)
    return (np.asarray(maternal) + np.asarray(paternal)).astype(GENOTYPE_DTYPE)


def breed_in_pairs(pairs, litter: int,
                   rng: Optional[DrawSource] = None) -> np.ndarray:
    """Breed every pair of a population and pool the litters.

    Litters are concatenated in pair order, so the offspring of pair k
    occupy ``[k*litter, (k+1)*litter)`` in the result.

    Args:
        pairs: (n_pairs, 2) parental genotypes, one pair per row.
        litter: Offspring per pair.
        rng: Draw source; a fresh default_rng() when omitted.

    Returns:
        (n_pairs * litter,) int8 offspring pool.
    """
    pairs = np.asarray(pairs)
    if pairs.ndim != 2 or pairs.shape[1] != 2:
        raise ValueError(f"pairs must have shape (n_pairs, 2), got {pairs.shape}")
    if litter < 0:
        raise ValueError(f"litter must be >= 0, got {litter}")
    if rng is None:
        rng = np.random.default_rng()
    n_pairs = pairs.shape[0]
    if n_pairs == 0 or litter == 0:
        return np.zeros(0, dtype=GENOTYPE_DTYPE)

    as_genotypes(pairs)  # range check only
    p_transmit = pairs.astype(np.float64) * 0.5          # (n_pairs, 2)

    # Each row of the draw matrix is one pair's litter
    maternal = rng.binomial(1, p_transmit[:, 0:1], size=(n_pairs, litter))
    paternal = rng.binomial(1, p_transmit[:, 1:2], size=(n_pairs, litter))
    offspring = np.asarray(maternal) + np.asarray(paternal)
    return offspring.astype(GENOTYPE_DTYPE).ravel()


# ═══════════════════════════════════════════════════════════════════════
# PAIR FORMATION
# ═══════════════════════════════════════════════════════════════════════


def form_breeding_pairs(pool, strategy: str = "recycle") -> np.ndarray:
    """Arrange a pool of individuals into breeding pairs.

    The pool is split into two halves which become the two columns, so
    individual i is paired with individual i + n_pairs. When the pool
    has an odd size:
      - 'recycle': the first individual also mates with the last
        (polygamy), giving ceil(n/2) pairs.
      - 'drop':    the last individual does not breed, giving floor(n/2).

    Args:
        pool: (n,) genotypes.
        strategy: One of PAIRING_STRATEGIES.

    Returns:
        (n_pairs, 2) int8 array.
    """
    if strategy not in PAIRING_STRATEGIES:
        raise ValueError(
            f"pairing strategy must be one of {PAIRING_STRATEGIES}, got '{strategy}'"
        )
    pool = as_genotypes(pool)
    if pool.size < 2:
        raise ValueError(f"at least 2 individuals are needed to pair, got {pool.size}")

    if pool.size % 2:
        logger.debug("odd pool of %d individuals, pairing strategy '%s'",
                     pool.size, strategy)
        if strategy == "recycle":
            pool = np.append(pool, pool[0])
        else:
            pool = pool[:-1]

    return np.ascontiguousarray(pool.reshape(2, -1).T)


# ═══════════════════════════════════════════════════════════════════════
# SELECTION
# ═══════════════════════════════════════════════════════════════════════


def genotype_weights(pool: np.ndarray, geno_probs) -> np.ndarray:
    """Per-individual selection weight, looked up by genotype."""
    geno_probs = np.asarray(geno_probs, dtype=np.float64)
    if geno_probs.shape != (N_GENOTYPES,):
        raise ValueError(
            f"geno_probs must have {N_GENOTYPES} entries, got {geno_probs.shape}"
        )
    return geno_probs[np.asarray(pool, dtype=np.intp)]


def select_weighted(pool, size: int, geno_probs, rng: DrawSource) -> np.ndarray:
    """Sample ``size`` individuals without replacement, weighted by genotype.

    Args:
        pool: (n,) genotypes to choose from.
        size: Number of individuals kept (0 ≤ size ≤ n).
        geno_probs: (3,) relative fitness of genotypes 0, 1, 2.
        rng: Draw source.

    Returns:
        (size,) int8 genotypes in draw order.

    Raises:
        ValueError: If fewer than ``size`` individuals have positive weight.
    """
    pool = as_genotypes(pool)
    weights = genotype_weights(pool, geno_probs)
    n_eligible = int(np.count_nonzero(weights > 0))
    if size > n_eligible:
        raise ValueError(
            f"cannot keep {size} of {pool.size} individuals: only "
            f"{n_eligible} have a positive selection weight"
        )
    if size == 0:
        return np.zeros(0, dtype=GENOTYPE_DTYPE)

    idx = rng.choice(pool.size, size=size, replace=False, p=weights / weights.sum())
    return pool[np.asarray(idx, dtype=np.intp)]
