"""Migration topology and migrant reassignment.

The population network is a ring of neighbouring populations (1..n-1)
with the focal population 0 as a hub connected to every neighbour:

  - Population 0 keeps a fraction 1 - mig of its migrants-to-be at home
    and spreads mig uniformly over all n-1 neighbours.
  - Population i > 0 keeps 1 - mig and sends mig/3 each to the hub, its
    next and its previous ring neighbour.

When the ring is too short for three distinct destinations (n = 2, 3)
the overlapping contributions are summed into the same cell, so every
row still sums to exactly 1.

Core functions:
  - set_mig_probs: build the (n, n) row-stochastic MigrationMatrix
  - migrate:       resample every individual's population by its origin row
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from driftsim.rng import DrawSource
from driftsim.types import FOCAL_POP, GENOTYPE_DTYPE, as_genotypes

logger = logging.getLogger(__name__)

ROW_SUM_ATOL = 1e-12


# ═══════════════════════════════════════════════════════════════════════
# TOPOLOGY
# ═══════════════════════════════════════════════════════════════════════


def ring_neighbours(i: int, n: int) -> Tuple[int, int]:
    """(previous, next) ring neighbours of population i > 0 in a network of n.

    The ring covers populations 1..n-1 only; the hub is never a ring member.
    """
    if not 1 <= i < n:
        raise ValueError(f"population {i} is not on the ring of a {n}-population network")
    ring = n - 1
    nxt = i % ring + 1
    prv = (i - 2) % ring + 1
    return prv, nxt


@dataclass
class MigrationMatrix:
    """Row-stochastic migration probabilities.

    ``probs[i, j]`` is the probability that an individual born in
    population i (row, origin) ends the generation in population j
    (column, destination).
    """
    probs: np.ndarray
    mig: float

    @property
    def n_pops(self) -> int:
        return self.probs.shape[0]

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self.probs
        return self.probs.astype(dtype)

    def destinations(self, origin: int) -> Tuple[int, ...]:
        """Populations an individual from ``origin`` may end up in."""
        n = self.n_pops
        if origin == FOCAL_POP:
            return tuple(range(n))
        prv, nxt = ring_neighbours(origin, n)
        return tuple(sorted({FOCAL_POP, origin, prv, nxt}))

    def validate(self, atol: float = ROW_SUM_ATOL) -> None:
        """Check shape, row sums and the ring-plus-hub sparsity pattern.

        Raises:
            ValueError: On the first violated constraint.
        """
        P = self.probs
        if P.ndim != 2 or P.shape[0] != P.shape[1]:
            raise ValueError(f"migration matrix must be square, got {P.shape}")
        if np.any(P < 0):
            raise ValueError("migration probabilities must be non-negative")
        row_sums = P.sum(axis=1)
        bad = np.flatnonzero(np.abs(row_sums - 1.0) > atol)
        if bad.size:
            raise ValueError(
                f"rows {bad.tolist()} of the migration matrix do not sum to 1 "
                f"(sums {row_sums[bad].tolist()})"
            )
        for i in range(1, self.n_pops):
            allowed = np.zeros(self.n_pops, dtype=bool)
            allowed[list(self.destinations(i))] = True
            if np.any(P[i, ~allowed] != 0):
                raise ValueError(
                    f"row {i} sends migrants outside its hub and ring neighbours"
                )


def set_mig_probs(n: int, mig: float) -> MigrationMatrix:
    """Build the ring-with-hub migration matrix.

    Args:
        n: Number of populations (n ≥ 1; n = 1 gives [[1.0]]).
        mig: Migration rate, 0 ≤ mig < 1.

    Returns:
        MigrationMatrix with rows summing to 1. mig = 0 gives the identity.
    """
    n = int(n)
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if not 0.0 <= mig < 1.0:
        raise ValueError(f"mig must be in [0, 1), got {mig}")

    P = np.zeros((n, n), dtype=np.float64)
    if n == 1:
        P[0, 0] = 1.0
        return MigrationMatrix(probs=P, mig=float(mig))

    # Focal population: uniform over all neighbours
    P[FOCAL_POP, :] = mig / (n - 1)
    P[FOCAL_POP, FOCAL_POP] = 1.0 - mig

    share = mig / 3.0
    for i in range(1, n):
        prv, nxt = ring_neighbours(i, n)
        P[i, i] += 1.0 - mig
        P[i, FOCAL_POP] += share
        P[i, nxt] += share
        P[i, prv] += share

    return MigrationMatrix(probs=P, mig=float(mig))


# ═══════════════════════════════════════════════════════════════════════
# MIGRANT REASSIGNMENT
# ═══════════════════════════════════════════════════════════════════════


def migrate(
    pops: Sequence,
    rate: float,
    migration_probs: Union[MigrationMatrix, np.ndarray],
    rng: Optional[DrawSource] = None,
) -> List[np.ndarray]:
    """Reassign every individual to a population drawn from its origin row.

    Each individual independently draws its destination, so the realised
    number of migrants out of population i is Binomial(size_i, 1 - P[i, i])
    and per-population sizes fluctuate while the total is conserved.
    Within a destination, arrivals are ordered by origin population and
    then by their position in the origin pool.

    Args:
        pops: n offspring pools.
        rate: Migration rate the matrix was built with; 0 returns copies
            of the input without consuming any draws.
        migration_probs: (n, n) MigrationMatrix or plain array.
        rng: Draw source; a fresh default_rng() when omitted.

    Returns:
        List of n new pools (int8).
    """
    pools = [as_genotypes(p) for p in pops]
    P = np.asarray(migration_probs, dtype=np.float64)
    n = len(pools)
    if P.shape != (n, n):
        raise ValueError(
            f"migration matrix shape {P.shape} does not match {n} populations"
        )
    if not 0.0 <= rate < 1.0:
        raise ValueError(f"rate must be in [0, 1), got {rate}")

    if rate == 0 or n == 1:
        return [p.copy() for p in pools]
    if rng is None:
        rng = np.random.default_rng()

    destinations = [
        np.asarray(rng.choice(n, size=pool.size, p=P[i]), dtype=np.intp)
        for i, pool in enumerate(pools)
    ]

    moved = sum(int(np.count_nonzero(d != i)) for i, d in enumerate(destinations))
    logger.debug("migration moved %d of %d individuals",
                 moved, sum(p.size for p in pools))

    result = []
    for j in range(n):
        arrivals = [pool[dest == j] for pool, dest in zip(pools, destinations)]
        result.append(np.concatenate(arrivals).astype(GENOTYPE_DTYPE))
    return result
