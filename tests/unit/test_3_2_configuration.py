"""
Unit tests for scheduler and application configuration.

Tests cover:
- Evolution parameter bounds
- Environment overrides
- Consistency validation
- Optimization profiles and presets
- Application settings
"""

import json
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

from src.core.config import Settings, settings
from src.timetabling.core.chromosome import CrossoverType
from src.timetabling.core.config import (
    EvolutionParameters,
    LoggingConfig,
    OptimizationProfile,
    SchedulerConfig,
    TerminationConfig,
    apply_profile,
    create_collective_config,
    create_default_config,
    create_individual_config,
    create_production_config,
    create_test_config,
)


class TestEvolutionParameters:
    """Test suite for EvolutionParameters."""

    def test_defaults(self):
        params = EvolutionParameters()

        assert params.population_size == 50
        assert params.generations == 100
        assert params.mutation_rate == 0.1
        assert params.crossover_type == CrossoverType.ONE_POINT
        assert params.preference_weight == 0.3
        assert params.conflict_weight == 0.7
        assert params.elite_size == 1

    @pytest.mark.parametrize("field,value", [
        ("population_size", 9),
        ("population_size", 501),
        ("generations", 9),
        ("generations", 2001),
        ("mutation_rate", 0.0),
        ("mutation_rate", 1.5),
        ("crossover_type", 3),
        ("preference_weight", 1.1),
        ("conflict_weight", -0.1),
    ])
    def test_bounds(self, field, value):
        with pytest.raises(ValueError):
            EvolutionParameters(**{field: value})

    def test_elite_smaller_than_population(self):
        with pytest.raises(ValueError):
            EvolutionParameters(population_size=10, elite_size=10)

    def test_crossover_type_from_int(self):
        assert EvolutionParameters(crossover_type=2).crossover_type == CrossoverType.TWO_POINT


class TestSchedulerConfig:
    """Test suite for SchedulerConfig."""

    def test_config_from_environment(self, monkeypatch):
        monkeypatch.setenv("TIMETABLING_POPULATION_SIZE", "200")
        monkeypatch.setenv("TIMETABLING_GENERATIONS", "300")
        monkeypatch.setenv("TIMETABLING_MUTATION_RATE", "0.05")
        monkeypatch.setenv("TIMETABLING_CROSSOVER_TYPE", "2")
        monkeypatch.setenv("TIMETABLING_MAX_RUNTIME_SECONDS", "30")
        monkeypatch.setenv("TIMETABLING_RANDOM_SEED", "42")

        config = SchedulerConfig.from_env()

        assert config.evolution.population_size == 200
        assert config.evolution.generations == 300
        assert config.evolution.mutation_rate == 0.05
        assert config.evolution.crossover_type == CrossoverType.TWO_POINT
        assert config.termination.max_runtime == timedelta(seconds=30)
        assert config.random_seed == 42

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValueError):
            SchedulerConfig(islands=4)

    def test_stagnation_must_be_shorter_than_generations(self):
        config = SchedulerConfig(
            evolution=EvolutionParameters(generations=20),
            termination=TerminationConfig(stagnation_generations=20),
        )

        with pytest.raises(ValueError):
            config.validate_consistency()

    def test_tournament_larger_than_population(self):
        config = SchedulerConfig(evolution=EvolutionParameters(population_size=10, tournament_size=11))

        with pytest.raises(ValueError):
            config.validate_consistency()

    def test_non_positive_runtime(self):
        with pytest.raises(ValueError):
            TerminationConfig(max_runtime=timedelta(0))

    def test_save_and_load(self):
        config = create_collective_config()

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            config.save(str(path))
            data = json.loads(path.read_text())
            loaded = SchedulerConfig.load(str(path))

        assert data["evolution"]["crossover_type"] == 2
        assert loaded == config


class TestProfilesAndPresets:
    """Test suite for optimization profiles and presets."""

    @pytest.mark.parametrize("profile,preference,conflict", [
        (OptimizationProfile.BALANCED, 0.3, 0.7),
        (OptimizationProfile.PREFERENCES, 0.6, 0.4),
        (OptimizationProfile.RESOURCES, 0.1, 0.9),
    ])
    def test_profile_weights(self, profile, preference, conflict):
        params = apply_profile(EvolutionParameters(population_size=80), profile)

        assert params.preference_weight == preference
        assert params.conflict_weight == conflict
        assert params.population_size == 80

    def test_profile_from_portuguese_name(self):
        assert OptimizationProfile("preferencias") == OptimizationProfile.PREFERENCES

    def test_individual_preset(self):
        evolution = create_individual_config().evolution

        assert (evolution.population_size, evolution.generations, evolution.mutation_rate,
                evolution.crossover_type) == (50, 100, 0.1, CrossoverType.ONE_POINT)

    def test_collective_preset(self):
        evolution = create_collective_config().evolution

        assert (evolution.population_size, evolution.generations, evolution.mutation_rate,
                evolution.crossover_type) == (100, 200, 0.05, CrossoverType.TWO_POINT)

    @pytest.mark.parametrize("factory", [
        create_default_config,
        create_individual_config,
        create_collective_config,
        create_test_config,
        create_production_config,
    ])
    def test_presets_are_consistent(self, factory):
        factory().validate_consistency()


class TestSettings:
    """Test suite for application settings."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCHEDULER_MAX_CONCURRENT_RUNS", "6")
        monkeypatch.setenv("SCHEDULER_LOG_LEVEL", "debug")
        monkeypatch.setenv("ENVIRONMENT", "Staging")

        app_settings = Settings(_env_file=None)

        assert app_settings.scheduler_max_concurrent_runs == 6
        assert app_settings.scheduler_log_level == "DEBUG"
        assert app_settings.environment == "staging"

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "moon")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_scheduler_log_level_is_the_engine_default(self, monkeypatch):
        monkeypatch.setattr(settings, "scheduler_log_level", "WARNING")

        assert LoggingConfig().log_level == "WARNING"
        assert LoggingConfig(log_level="DEBUG").log_level == "DEBUG"

    def test_logfire_settings_without_token(self):
        app_settings = Settings(_env_file=None, logfire_token="", logfire_console=False, debug=False)

        logfire_settings = app_settings.get_logfire_settings()

        assert logfire_settings["token"] is None
        assert logfire_settings["send_to_logfire"] == "if-token-present"
        assert logfire_settings["console"] is False

    def test_observability_configures_once(self, monkeypatch, mocker):
        from src.core import observability

        mock_logfire = mocker.patch.object(observability, "logfire")
        monkeypatch.setattr(observability, "_configured", False)
        app_settings = Settings(_env_file=None, logfire_token="", logfire_console=False, debug=False)

        observability.configure_observability(app_settings)
        observability.configure_observability(app_settings)

        mock_logfire.configure.assert_called_once_with(**app_settings.get_logfire_settings())
        mock_logfire.info.assert_called_once()

        observability.configure_observability(app_settings, force=True)

        assert mock_logfire.configure.call_count == 2
