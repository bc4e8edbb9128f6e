"""Generational drift simulation across a ring-with-hub population network.

Run structure:
  - Starting frequencies: focal f0, neighbours from the configured mode
  - Bottleneck: 2·N0 individuals per population drawn at Hardy-Weinberg
    proportions, a Binomial(2·N0, surv) number survive, chosen by
    genotype fitness; every population needs ≥ 2 survivors
  - Growth plan: per population, breeding-pair targets interpolated on
    the log scale from survivors/2 to Nt over t generations
  - Generation loop (t times):
      breed all pairs → migrate offspring → check capacity →
      select 2·target breeders by genotype fitness → re-pair
  - Summary: tracked-allele frequency of the focal offspring pool after
    the final migration, plus the focal growth schedule

Per-population work (bottleneck, breeding, selection) draws only from
that population's RNG stream, so ``parallel_workers`` changes wall time
but never results.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from driftsim.breeding import breed_in_pairs, form_breeding_pairs, select_weighted
from driftsim.config import (
    DemographySection,
    DriftConfig,
    MigrationSection,
    NeighbourSection,
    SelectionSection,
    SimulationSection,
    validate_config,
)
from driftsim.links import inv_logit, logit
from driftsim.migration import migrate, set_mig_probs
from driftsim.perf import PerfMonitor
from driftsim.rng import DrawSource, create_rng_hierarchy, get_pop_rng
from driftsim.types import (
    FOCAL_POP,
    CapacityError,
    DriftResult,
    ViabilityError,
    allele_frequency,
)

logger = logging.getLogger(__name__)

MIN_VIABLE = 2   # one breeding pair


# ═══════════════════════════════════════════════════════════════════════
# STARTING FREQUENCIES
# ═══════════════════════════════════════════════════════════════════════

def neighbour_start_freqs(
    f0: float,
    n_neighbours: int,
    pops: str,
    sd: float,
    rng: DrawSource,
) -> np.ndarray:
    """Tracked-allele frequencies for the neighbouring populations.

    Centred modes draw on the logit scale, N(logit(centre), sd), and map
    back with the inverse logit. With sd = 0, or a centre of exactly 0
    or 1, every neighbour gets the centre and no draw is taken.

    Args:
        f0: Focal starting frequency.
        n_neighbours: Number of neighbouring populations (n - 1).
        pops: One of "same", "flip50", "flip100", "fixed", "absent".
        sd: Logit-scale spread for the centred modes.
        rng: Draw source.

    Returns:
        (n_neighbours,) float64 frequencies.
    """
    if pops == "fixed":
        return np.ones(n_neighbours, dtype=np.float64)
    if pops == "absent":
        return np.zeros(n_neighbours, dtype=np.float64)

    centres = {"same": f0, "flip50": 1.5 - f0, "flip100": 1.0 - f0}
    if pops not in centres:
        raise ValueError(f"unknown neighbour mode '{pops}'")
    centre = centres[pops]

    if sd == 0 or n_neighbours == 0 or centre in (0.0, 1.0):
        return np.full(n_neighbours, centre, dtype=np.float64)
    draws = rng.normal(logit(centre), sd, size=n_neighbours)
    return np.asarray(inv_logit(draws), dtype=np.float64)


# ═══════════════════════════════════════════════════════════════════════
# BOTTLENECK & GROWTH PLAN
# ═══════════════════════════════════════════════════════════════════════

def bottleneck(
    freq: float,
    n0: int,
    surv: float,
    geno_probs,
    rng: DrawSource,
) -> np.ndarray:
    """Survivors of the founding bottleneck for one population.

    2·n0 genotypes are drawn as Binomial(2, 1 - freq) reference-allele
    counts; Binomial(2·n0, surv) of them survive, picked without
    replacement with probability proportional to their genotype weight.

    Raises:
        ValueError: If too few individuals carry a positive weight.
    """
    founders = np.asarray(rng.binomial(2, 1.0 - freq, size=2 * n0), dtype=np.int8)
    n_surv = int(rng.binomial(founders.size, surv))
    return select_weighted(founders, n_surv, geno_probs, rng)


def growth_schedule(n_start_pairs: float, nt: int, t: int) -> np.ndarray:
    """Breeding-pair targets for generations 1..t.

    Exponential (log-linear) interpolation from ``n_start_pairs`` to
    ``nt`` in t steps, rounded half-to-even; the starting point itself
    is not part of the schedule.

    Returns:
        (t,) int64 array, ending at nt.
    """
    if n_start_pairs <= 0:
        raise ValueError(f"n_start_pairs must be positive, got {n_start_pairs}")
    path = np.exp(np.linspace(np.log(n_start_pairs), np.log(nt), t + 1))
    return np.rint(path[1:]).astype(np.int64)


def _per_population(executor: Optional[ThreadPoolExecutor],
                    fn: Callable[[int], np.ndarray],
                    n_pops: int) -> List[np.ndarray]:
    if executor is None:
        return [fn(i) for i in range(n_pops)]
    return list(executor.map(fn, range(n_pops)))


# ═══════════════════════════════════════════════════════════════════════
# SIMULATION
# ═══════════════════════════════════════════════════════════════════════

def run_drift_simulation(
    config: DriftConfig,
    rngs: Optional[Dict[str, DrawSource]] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    perf: Optional[PerfMonitor] = None,
) -> DriftResult:
    """Run one drift simulation from a validated-on-entry DriftConfig.

    Args:
        config: Simulation configuration (validated here).
        rngs: Optional stream hierarchy (as from create_rng_hierarchy);
            built from ``config.simulation.seed`` when omitted.
        progress_callback: Optional callable(generation, t) after every
            generation.
        perf: Optional PerfMonitor for per-phase timings.

    Returns:
        DriftResult; ``ft`` and ``n_eff`` describe population 0.

    Raises:
        ValueError: Invalid configuration.
        ViabilityError: A population has < 2 survivors after the bottleneck.
        CapacityError: A generation's offspring pool is too small for
            its scheduled size.
    """
    validate_config(config)
    sim = config.simulation
    d = config.demography
    nb = config.neighbours
    geno_probs = np.asarray(config.selection.geno_probs, dtype=np.float64)
    mig = config.migration.mig
    n, t = d.n, d.t

    if perf is None:
        perf = PerfMonitor(enabled=False)
    if rngs is None:
        rngs = create_rng_hierarchy(sim.seed, n)
    pop_rngs = [get_pop_rng(rngs, i) for i in range(n)]

    logger.info(
        "drift run: n=%d t=%d f0=%.4g N0=%d Nt=%d surv=%.4g litter=%d "
        "mig=%.4g pops=%s seed=%s",
        n, t, d.f0, d.N0, d.Nt, d.surv, d.litter, mig, nb.pops, sim.seed,
    )

    f_start = np.concatenate((
        [d.f0],
        neighbour_start_freqs(d.f0, n - 1, nb.pops, nb.sd, rngs['global']),
    ))
    mig_probs = set_mig_probs(n, mig)

    executor = (ThreadPoolExecutor(max_workers=min(sim.parallel_workers, n))
                if sim.parallel_workers > 1 else None)
    try:
        # ── Bottleneck ───────────────────────────────────────────────
        def _survive(i: int) -> np.ndarray:
            try:
                return bottleneck(f_start[i], d.N0, d.surv, geno_probs, pop_rngs[i])
            except ValueError as exc:
                raise ViabilityError(
                    f"Population {i} cannot be founded: {exc}",
                    population=i, generation=0,
                    observed=0, required=MIN_VIABLE,
                ) from exc

        with perf.track("bottleneck"):
            survivors = _per_population(executor, _survive, n)

        survivor_counts = np.array([s.size for s in survivors], dtype=np.int64)
        too_small = np.flatnonzero(survivor_counts < MIN_VIABLE)
        if too_small.size:
            i = int(too_small[0])
            raise ViabilityError(
                f"One or more populations are too small to be viable "
                f"post-bottleneck: population {i} has {survivor_counts[i]} "
                f"survivor(s), at least {MIN_VIABLE} are needed",
                population=i, generation=0,
                observed=int(survivor_counts[i]), required=MIN_VIABLE,
            )

        # ── Growth plan ──────────────────────────────────────────────
        gen_sizes = np.vstack([
            growth_schedule(count / 2.0, d.Nt, t) for count in survivor_counts
        ])
        pairs = [form_breeding_pairs(s, sim.pairing) for s in survivors]

        pool_sizes = np.zeros((n, t), dtype=np.int64)
        freq_history = np.zeros((n, t), dtype=np.float64)
        progeny: List[np.ndarray] = []

        # ── Generation loop ──────────────────────────────────────────
        for g in range(t):
            with perf.track("breeding"):
                progeny = _per_population(
                    executor,
                    lambda i: breed_in_pairs(pairs[i], d.litter, pop_rngs[i]),
                    n,
                )

            with perf.track("migration"):
                progeny = migrate(progeny, mig, mig_probs, rngs['migration'])

            pool_sizes[:, g] = [p.size for p in progeny]
            freq_history[:, g] = [allele_frequency(p) for p in progeny]

            keep = gen_sizes[:, g]
            short = np.flatnonzero(pool_sizes[:, g] <= 2 * keep)
            if short.size:
                i = int(short[0])
                raise CapacityError(
                    f"Breeding rates unable to give required final population "
                    f"size: population {i} has {pool_sizes[i, g]} offspring in "
                    f"generation {g + 1}, more than {2 * keep[i]} are needed",
                    population=i, generation=g + 1,
                    observed=int(pool_sizes[i, g]), required=int(2 * keep[i]),
                )

            def _select(i: int, g: int = g) -> np.ndarray:
                try:
                    return select_weighted(progeny[i], 2 * int(keep[i]),
                                           geno_probs, pop_rngs[i])
                except ValueError as exc:
                    raise CapacityError(
                        f"Population {i} cannot supply its breeders in "
                        f"generation {g + 1}: {exc}",
                        population=i, generation=g + 1,
                        observed=int(pool_sizes[i, g]), required=int(2 * keep[i]),
                    ) from exc

            with perf.track("selection"):
                breeders = _per_population(executor, _select, n)
            pairs = [form_breeding_pairs(b, sim.pairing) for b in breeders]

            logger.debug(
                "generation %d/%d: pools=%s focal freq=%.4f",
                g + 1, t, pool_sizes[:, g].tolist(), freq_history[FOCAL_POP, g],
            )
            if progress_callback is not None:
                progress_callback(g + 1, t)
    finally:
        if executor is not None:
            executor.shutdown()

    ft = allele_frequency(progeny[FOCAL_POP])
    logger.info("drift run complete: ft=%.4f after %d generations", ft, t)

    return DriftResult(
        ft=ft,
        n_eff=gen_sizes[FOCAL_POP].copy(),
        n_pops=n,
        n_generations=t,
        f_start=f_start,
        survivors=survivor_counts,
        gen_sizes=gen_sizes,
        pool_sizes=pool_sizes,
        freq_history=freq_history,
        seed=sim.seed,
        pops=nb.pops,
    )


def sim_drift(
    f0: float,
    N0: int,
    Nt: int,
    t: int,
    n: int,
    mig: float,
    surv: float,
    litter: int,
    pops: Union[str, Sequence[str]] = "same",
    sd: float = 0.0,
    geno_probs: Sequence[float] = (1.0, 1.0, 1.0),
    *,
    seed: Optional[int] = None,
    pairing: str = "recycle",
    parallel_workers: int = 1,
    rng: Optional[DrawSource] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    perf: Optional[PerfMonitor] = None,
) -> DriftResult:
    """Simulate drift of one bi-allelic locus across n populations.

    All populations pass through the same bottleneck (survival ``surv``)
    and then grow exponentially towards ``Nt`` breeding pairs over ``t``
    generations. Each generation every pair has ``litter`` offspring;
    offspring migrate, and only the scheduled number breed, chosen by
    genotype fitness ``geno_probs``.

    Args:
        f0: Tracked-allele frequency in the focal population, pre-bottleneck.
        N0: Breeding pairs per population, pre-bottleneck.
        Nt: Breeding pairs after t generations.
        t: Number of generations.
        n: Number of populations (focal + n - 1 neighbours).
        mig: Migration rate, 0 ≤ mig < 1.
        surv: Bottleneck survival probability.
        litter: Offspring per pair (≥ 3).
        pops: Neighbour starting-frequency mode, "same" | "flip50" |
            "flip100" | "fixed" | "absent". If a sequence is given only
            its first entry is used.
        sd: Logit-scale spread of neighbour frequencies around the centre.
        geno_probs: Relative fitness of genotypes 0, 1, 2, e.g.
            (1.2, 1, 1) for a 20% advantage of genotype 0.
        seed: Master seed; None draws fresh entropy.
        pairing: Odd-pool pairing strategy, "recycle" or "drop".
        parallel_workers: Threads for per-population work.
        rng: Single draw source used for every stream (forces serial
            execution); overrides ``seed``.
        progress_callback: Optional callable(generation, t).
        perf: Optional PerfMonitor.

    Returns:
        DriftResult with ``ft`` (final focal frequency) and ``n_eff``
        (focal breeding-pair schedule, length t).

    Example:
        >>> res = sim_drift(f0=0.8, N0=100, Nt=200, t=10, n=6,
        ...                 mig=0.01, surv=0.1, litter=6, seed=1)
        >>> 0.0 <= res.ft <= 1.0
        True
    """
    if not isinstance(pops, str):
        pops = list(pops)
        if not pops:
            pops = ["same"]
        if len(pops) > 1:
            logger.warning(
                "More than one value provided for pops. Only the first "
                "value (%r) will be used", pops[0],
            )
        pops = pops[0]

    config = DriftConfig(
        simulation=SimulationSection(
            seed=seed,
            parallel_workers=1 if rng is not None else int(parallel_workers),
            pairing=pairing,
        ),
        demography=DemographySection(
            f0=float(f0), N0=int(N0), Nt=int(Nt), t=int(t), n=int(n),
            surv=float(surv), litter=int(litter),
        ),
        migration=MigrationSection(mig=float(mig)),
        neighbours=NeighbourSection(pops=pops, sd=float(sd)),
        selection=SelectionSection(geno_probs=[float(w) for w in geno_probs]),
    )

    rngs = None
    if rng is not None:
        rngs = {'global': rng, 'migration': rng}
        rngs.update({f'pop_{i}': rng for i in range(int(n))})

    return run_drift_simulation(
        config, rngs=rngs, progress_callback=progress_callback, perf=perf,
    )
