"""Tests for driftsim.types — genotype encoding, errors, result container."""

import json

import numpy as np
import pytest

from driftsim.types import (
    FOCAL_POP,
    GENOTYPE_DTYPE,
    PAIRING_STRATEGIES,
    POPS_MODES,
    CapacityError,
    DriftError,
    DriftResult,
    Genotype,
    ViabilityError,
    allele_frequency,
    as_genotypes,
)


class TestGenotypeEnum:
    def test_values(self):
        assert Genotype.HOM_TRACKED == 0
        assert Genotype.HET == 1
        assert Genotype.HOM_REF == 2

    def test_usable_as_index(self):
        weights = np.array([1.2, 1.0, 0.8])
        assert weights[Genotype.HOM_TRACKED] == 1.2


class TestConstants:
    def test_focal_is_first(self):
        assert FOCAL_POP == 0

    def test_modes(self):
        assert POPS_MODES[0] == "same"
        assert set(POPS_MODES) == {"same", "flip50", "flip100", "fixed", "absent"}
        assert "recycle" in PAIRING_STRATEGIES


class TestAsGenotypes:
    def test_flattens_and_casts(self):
        arr = as_genotypes([[0, 1], [2, 1]])
        assert arr.dtype == GENOTYPE_DTYPE
        np.testing.assert_array_equal(arr, [0, 1, 2, 1])

    @pytest.mark.parametrize("bad", [[0, 3], [-1, 1]])
    def test_out_of_range(self, bad):
        with pytest.raises(ValueError, match="genotypes must lie"):
            as_genotypes(bad)

    def test_empty(self):
        assert as_genotypes([]).size == 0


class TestAlleleFrequency:
    def test_all_zero_dosage_is_fixed(self):
        assert allele_frequency(np.zeros(10, dtype=np.int8)) == 1.0

    def test_all_full_dosage_is_absent(self):
        assert allele_frequency(np.full(10, 2, dtype=np.int8)) == 0.0

    def test_mixed(self):
        # dosages 0, 1, 2, 1 → tracked copies 2, 1, 0, 1 of 8
        assert allele_frequency(np.array([0, 1, 2, 1])) == 0.5
        assert allele_frequency(np.array([0, 0, 0, 1])) == pytest.approx(7 / 8)

    def test_empty_is_nan(self):
        assert np.isnan(allele_frequency(np.array([], dtype=np.int8)))


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(DriftError, RuntimeError)
        assert issubclass(ViabilityError, DriftError)
        assert issubclass(CapacityError, DriftError)

    def test_context(self):
        err = CapacityError("short", population=3, generation=2,
                            observed=10, required=12)
        assert str(err) == "short"
        assert (err.population, err.generation, err.observed, err.required) == (
            3, 2, 10, 12)


class TestDriftResult:
    def test_as_dict_is_json_serializable(self):
        res = DriftResult(
            ft=0.75,
            n_eff=np.array([12, 15, 20]),
            n_pops=2,
            n_generations=3,
            f_start=np.array([0.8, 0.8]),
            survivors=np.array([20, 18]),
            gen_sizes=np.array([[12, 15, 20], [11, 15, 20]]),
            pool_sizes=np.array([[60, 72, 90], [55, 70, 92]]),
            freq_history=np.zeros((2, 3)),
            seed=1,
        )
        d = res.as_dict()
        assert d['nEff'] == [12, 15, 20]
        assert d['ft'] == 0.75
        json.dumps(d)

    def test_defaults(self):
        d = DriftResult().as_dict()
        assert d['nEff'] is None
        assert d['pops'] == "same"
