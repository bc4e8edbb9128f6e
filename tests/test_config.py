"""Tests for driftsim.config — configuration loading and validation."""

import logging

import pytest
import yaml

from driftsim.config import (
    DemographySection,
    DriftConfig,
    MigrationSection,
    NeighbourSection,
    SelectionSection,
    SimulationSection,
    config_from_dict,
    config_to_dict,
    deep_merge,
    default_config,
    load_config,
    save_config,
    validate_config,
)


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        base = {'a': 1, 'b': 2}
        result = deep_merge(base, {'b': 3})
        assert result == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        override = {'x': {'b': 3, 'c': 4}}
        result = deep_merge(base, override)
        assert result == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_override_dict_with_scalar(self):
        result = deep_merge({'a': {'nested': 1}}, {'a': 'replaced'})
        assert result == {'a': 'replaced'}

    def test_empty_override(self):
        assert deep_merge({'a': 1}, {}) == {'a': 1}


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_creates_valid_config(self):
        assert isinstance(default_config(), DriftConfig)

    def test_documented_example_defaults(self):
        config = default_config()
        d = config.demography
        assert (d.f0, d.N0, d.Nt, d.t, d.n, d.surv, d.litter) == (
            0.8, 100, 200, 10, 6, 0.1, 6)
        assert config.migration.mig == 0.01
        assert config.neighbours.pops == "same"
        assert config.neighbours.sd == 0.0
        assert config.selection.geno_probs == [1.0, 1.0, 1.0]

    def test_run_control_defaults(self):
        config = default_config()
        assert config.simulation.seed == 42
        assert config.simulation.parallel_workers == 1
        assert config.simulation.pairing == "recycle"

    def test_sections_are_independent(self):
        a, b = DriftConfig(), DriftConfig()
        a.selection.geno_probs[0] = 2.0
        assert b.selection.geno_probs[0] == 1.0


# ── validation tests ─────────────────────────────────────────────────

def _config(**sections):
    config = DriftConfig()
    for name, values in sections.items():
        for key, value in values.items():
            setattr(getattr(config, name), key, value)
    return config


class TestValidation:
    @pytest.mark.parametrize("f0", [0.0, 1.0, -0.2, 1.3])
    def test_f0_open_interval(self, f0):
        with pytest.raises(ValueError, match="f0"):
            validate_config(_config(demography={'f0': f0}))

    @pytest.mark.parametrize("name", ['N0', 'Nt', 't', 'n'])
    def test_counts_positive(self, name):
        with pytest.raises(ValueError, match=name):
            validate_config(_config(demography={name: 0}))

    def test_counts_integer(self):
        with pytest.raises(ValueError, match="integer"):
            validate_config(_config(demography={'N0': 10.5}))

    def test_litter_at_least_three(self):
        with pytest.raises(ValueError, match="litter"):
            validate_config(_config(demography={'litter': 2}))

    @pytest.mark.parametrize("surv", [0.0, 1.01])
    def test_surv_range(self, surv):
        with pytest.raises(ValueError, match="surv"):
            validate_config(_config(demography={'surv': surv}))

    def test_full_survival_allowed(self):
        validate_config(_config(demography={'surv': 1.0}))

    @pytest.mark.parametrize("mig", [-0.01, 1.0])
    def test_mig_range(self, mig):
        with pytest.raises(ValueError, match="mig"):
            validate_config(_config(migration={'mig': mig}))

    def test_zero_migration_allowed(self):
        validate_config(_config(migration={'mig': 0.0}))

    def test_unknown_pops(self):
        with pytest.raises(ValueError, match="pops"):
            validate_config(_config(neighbours={'pops': 'mirror'}))

    def test_negative_sd(self):
        with pytest.raises(ValueError, match="sd"):
            validate_config(_config(neighbours={'sd': -1.0}))

    def test_flip50_needs_major_allele(self):
        with pytest.raises(ValueError, match="flip50"):
            validate_config(_config(demography={'f0': 0.4},
                                    neighbours={'pops': 'flip50'}))
        validate_config(_config(demography={'f0': 0.6},
                                neighbours={'pops': 'flip50'}))

    def test_flip50_at_half_allowed(self):
        """f0 = 0.5 puts the neighbour centre at 1, which is still a frequency."""
        validate_config(_config(demography={'f0': 0.5},
                                neighbours={'pops': 'flip50'}))

    def test_geno_probs_length(self):
        with pytest.raises(ValueError, match="3 entries"):
            validate_config(_config(selection={'geno_probs': [1, 1]}))

    def test_geno_probs_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            validate_config(_config(selection={'geno_probs': [1, -1, 1]}))

    def test_geno_probs_all_zero(self):
        with pytest.raises(ValueError, match="positive sum"):
            validate_config(_config(selection={'geno_probs': [0, 0, 0]}))

    def test_seed_non_negative(self):
        with pytest.raises(ValueError, match="seed"):
            validate_config(_config(simulation={'seed': -1}))

    def test_seed_none_allowed(self):
        validate_config(_config(simulation={'seed': None}))

    def test_parallel_workers(self):
        with pytest.raises(ValueError, match="parallel_workers"):
            validate_config(_config(simulation={'parallel_workers': 0}))

    def test_pairing(self):
        with pytest.raises(ValueError, match="pairing"):
            validate_config(_config(simulation={'pairing': 'harem'}))


# ── YAML loading tests ───────────────────────────────────────────────

class TestLoadConfig:
    def test_load_base(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.safe_dump({
            'demography': {'f0': 0.6, 'n': 4},
            'neighbours': {'pops': 'flip100', 'sd': 0.5},
        }))
        config = load_config(path)
        assert config.demography.f0 == 0.6
        assert config.demography.n == 4
        assert config.demography.N0 == 100     # untouched default
        assert config.neighbours.pops == 'flip100'

    def test_scenario_and_sweep_layers(self, tmp_path):
        base = tmp_path / "base.yaml"
        base.write_text(yaml.safe_dump({'migration': {'mig': 0.05}}))
        scenario = tmp_path / "scenario.yaml"
        scenario.write_text(yaml.safe_dump({
            'migration': {'mig': 0.1},
            'selection': {'geno_probs': [1.2, 1, 1]},
        }))
        config = load_config(base, scenario_path=scenario,
                             sweep_overrides={'migration': {'mig': 0.2}})
        assert config.migration.mig == 0.2
        assert config.selection.geno_probs == [1.2, 1, 1]

    def test_missing_scenario_warns(self, tmp_path, caplog):
        base = tmp_path / "base.yaml"
        base.write_text("")
        with caplog.at_level(logging.WARNING, logger="driftsim.config"):
            config = load_config(base, scenario_path=tmp_path / "nope.yaml")
        assert config == DriftConfig()
        assert any("nope.yaml" in rec.getMessage() and rec.levelno == logging.WARNING
                   for rec in caplog.records)

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.safe_dump({
            'demography': {'t': 5, 'colour': 'blue'},
            'plotting': {'dpi': 300},
        }))
        assert load_config(path).demography.t == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({'demography': {'litter': 1}}))
        with pytest.raises(ValueError, match="litter"):
            load_config(path)

    def test_save_round_trip(self, tmp_path):
        config = DriftConfig(
            simulation=SimulationSection(seed=7, pairing='drop'),
            demography=DemographySection(f0=0.3, n=9),
            migration=MigrationSection(mig=0.2),
            neighbours=NeighbourSection(pops='absent'),
            selection=SelectionSection(geno_probs=[1.0, 0.5, 0.25]),
        )
        path = tmp_path / "saved.yaml"
        save_config(config, path)
        assert load_config(path) == config

    def test_dict_round_trip(self):
        config = default_config()
        assert config_from_dict(config_to_dict(config)) == config
