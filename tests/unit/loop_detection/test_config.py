import logging

import pytest
from pydantic import ValidationError
from swarm_loopguard.core.config.app_config import AppConfig
from swarm_loopguard.loop_detection.config import LoopDetectionConfig


class TestLoopDetectionConfig:
    """Validation and tolerant loading of detection thresholds."""

    def test_defaults(self) -> None:
        config = LoopDetectionConfig()
        assert config.history_capacity == 50
        assert config.exact_min_repeats == 3
        assert config.semantic_threshold == 0.85
        assert config.suspected_to_confirmed_repeats == 2
        assert config.cooldown_turns == 5
        assert config.break_confidence_threshold == 0.9
        assert config.validate_runtime() == []

    @pytest.mark.parametrize(
        "values",
        [
            {"history_capacity": 0},
            {"exact_min_repeats": 1},
            {"semantic_threshold": 1.5},
            {"semantic_threshold": 0.0},
            {"exact_window": 2, "exact_min_repeats": 3},
            {"semantic_window": 1, "semantic_min_repeats": 2},
            {"oscillation_min_period": 5, "oscillation_max_period": 4},
        ],
    )
    def test_programmatic_construction_is_strict(self, values) -> None:
        with pytest.raises(ValidationError):
            LoopDetectionConfig(**values)

    def test_file_values_are_coerced(self) -> None:
        config = AppConfig.from_dict(
            {"detection": {"history_capacity": "20", "semantic_enabled": "false", "semantic_threshold": "0.9"}}
        ).detection
        assert config.history_capacity == 20
        assert config.semantic_enabled is False
        assert config.semantic_threshold == 0.9

    def test_invalid_file_values_are_dropped(self, caplog) -> None:
        issues: list[str] = []
        with caplog.at_level(logging.WARNING):
            config = AppConfig.from_dict(
                {"detection": {"history_capacity": -3, "cooldown_turns": 7, "bogus": 1}},
                issues=issues,
            ).detection
        assert config.history_capacity == 50
        assert config.cooldown_turns == 7
        assert any("history_capacity" in issue for issue in issues)
        assert any("bogus" in issue for issue in issues)
        assert "Configuration:" in caplog.text

    def test_inconsistent_file_section_falls_back_to_defaults(self) -> None:
        issues: list[str] = []
        config = AppConfig.from_dict(
            {"detection": {"exact_window": 2, "exact_min_repeats": 5}}, issues=issues
        ).detection
        assert config == LoopDetectionConfig()
        assert any("falling back" in issue for issue in issues)

    def test_env_overrides(self) -> None:
        overrides = LoopDetectionConfig.env_overrides(
            {"LOOPGUARD_COOLDOWN_TURNS": "9", "LOOPGUARD_UNKNOWN": "x", "PATH": "/bin"}
        )
        assert overrides == {"cooldown_turns": "9"}

    def test_validate_runtime_flags_unreachable_thresholds(self) -> None:
        config = LoopDetectionConfig(
            history_capacity=2, exact_min_repeats=4, exact_window=4, semantic_min_repeats=3
        )
        notes = config.validate_runtime()
        assert any("exact_min_repeats" in note for note in notes)
        assert any("semantic_min_repeats" in note for note in notes)
