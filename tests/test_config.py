"""
Configuration tests: defaults, environment binding, YAML loading and the
ConfigManager singleton.
"""

from decimal import Decimal

import pytest
import yaml

from herbchain.config import (
    ConfigError,
    ConfigManager,
    HerbChainConfig,
    ValidationError,
    get_config,
    get_config_manager,
    load_config_file,
)


@pytest.fixture
def manager():
    m = get_config_manager()
    m.reset()
    yield m
    m.reset()


class TestDefaults:

    def test_protocol_constants(self, config):
        assert config.ledger.tolerance_ratio.get() == Decimal("0.02")
        assert config.ledger.fraud_penalty.get() == 10
        assert config.ledger.verification_reward.get() == 1
        assert config.ledger.production_reward.get() == 2
        assert config.ledger.quality_block_penalty.get() == 5
        assert config.ledger.initial_reputation.get() == 100

    def test_quality_thresholds(self, config):
        assert config.quality.min_score_to_register.get() == 50
        assert config.quality.min_score_to_transfer.get() == 70
        assert config.quality.min_score_to_consume.get() == 60
        assert config.quality.excellent_score.get() == 90

    def test_to_dict_renders_decimals_as_strings(self, config):
        d = config.to_dict()
        assert d["ledger"]["tolerance_ratio"] == "0.02"
        assert d["persistence"]["autosave"] is True


class TestEnvironment:

    def test_int_override(self, config, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_MIN_SCORE_TRANSFER", "75")
        assert config.quality.min_score_to_transfer.get() == 75

    def test_decimal_override(self, config, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_TOLERANCE_RATIO", "0.05")
        assert config.ledger.tolerance_ratio.get() == Decimal("0.05")

    def test_bool_override(self, config, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_AUTOSAVE", "off")
        assert config.persistence.autosave.get() is False

    def test_env_beats_runtime_set(self, config, monkeypatch):
        config.ledger.fraud_penalty.set(20)
        monkeypatch.setenv("HERBCHAIN_FRAUD_PENALTY", "30")
        assert config.ledger.fraud_penalty.get() == 30

    def test_malformed_override_falls_back(self, config, monkeypatch, caplog):
        monkeypatch.setenv("HERBCHAIN_TOLERANCE_RATIO", "two percent")
        assert config.ledger.tolerance_ratio.get() == Decimal("0.02")
        assert "HERBCHAIN_TOLERANCE_RATIO" in caplog.text

    def test_out_of_range_override_falls_back_to_runtime_value(self, config, monkeypatch):
        config.quality.min_score_to_transfer.set(75)
        monkeypatch.setenv("HERBCHAIN_MIN_SCORE_TRANSFER", "150")
        assert config.quality.min_score_to_transfer.get() == 75

    def test_engine_survives_malformed_override(self, engine, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_TOLERANCE_RATIO", "abc")
        engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "100", "Kg", None)
        assert engine.verify_receipt("SUPPLIER-001", "H1", "98").success


class TestValidation:

    def test_invalid_set_rejected(self, config):
        with pytest.raises(ValidationError):
            config.quality.min_score_to_transfer.set(101)
        assert config.quality.min_score_to_transfer.get() == 70

    def test_tolerance_must_be_a_ratio(self, config):
        with pytest.raises(ValidationError):
            config.ledger.tolerance_ratio.set("1.5")

    def test_change_callback(self, config):
        seen = []
        config.ledger.production_reward.on_change(lambda old, new: seen.append((old, new)))
        config.ledger.production_reward.set(3)
        assert seen == [(None, 3)]


class TestFiles:

    def test_load_config_file(self, tmp_path):
        path = tmp_path / "herbchain.yaml"
        path.write_text(yaml.safe_dump({
            "ledger": {"tolerance_ratio": "0.03", "fraud_penalty": 15},
            "observability": {"log_format": "text"},
        }), encoding="utf-8")
        config = load_config_file(path)
        assert config.ledger.tolerance_ratio.get() == Decimal("0.03")
        assert config.ledger.fraud_penalty.get() == 15
        assert config.observability.log_format.get() == "text"

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "herbchain.yaml"
        path.write_text("ledger:\n  bonus: 3\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config_file(tmp_path / "absent.yaml")

    def test_yaml_export_loads_back(self, tmp_path, config):
        config.quality.min_score_to_consume.set(65)
        path = tmp_path / "export.yaml"
        path.write_text(config.to_yaml(), encoding="utf-8")
        assert load_config_file(path).quality.min_score_to_consume.get() == 65


class TestConfigManager:

    def test_singleton(self, manager):
        assert ConfigManager() is manager
        assert get_config() is manager.config

    def test_set_and_get_by_path(self, manager):
        manager.set("quality.min_score_to_transfer", 80)
        assert manager.get("quality.min_score_to_transfer") == 80

    def test_invalid_path(self, manager):
        with pytest.raises(ConfigError):
            manager.set("quality", 1)

    def test_validate_reports_bad_environment(self, manager, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_LOG_LEVEL", "loud")
        errors = manager.validate()
        assert len(errors) == 1
        assert errors[0].startswith("observability.log_level")

    def test_validate_reports_malformed_number(self, manager, monkeypatch):
        monkeypatch.setenv("HERBCHAIN_FRAUD_PENALTY", "ten")
        assert manager.validate() == [
            "ledger.fraud_penalty: HERBCHAIN_FRAUD_PENALTY='ten' is not a valid int"
        ]

    def test_reload_notifies_watchers(self, manager, tmp_path):
        path = tmp_path / "herbchain.yaml"
        path.write_text("quality:\n  excellent_score: 95\n", encoding="utf-8")
        manager.load_from_file(path)
        seen = []
        manager.watch(seen.append)
        manager.reload()
        assert seen == [manager.config]
        assert manager.get("quality.excellent_score") == 95

    def test_export_schema(self, manager):
        schema = manager.export_schema()
        entry = schema["properties"]["ledger"]["tolerance_ratio"]
        assert entry["env_var"] == "HERBCHAIN_TOLERANCE_RATIO"
        assert entry["default"] == "0.02"

    def test_fresh_config_is_independent(self, manager):
        manager.set("ledger.fraud_penalty", 50)
        assert HerbChainConfig().ledger.fraud_penalty.get() == 10
