"""Tests for TOML configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from adaptive_router.config import RouterConfig, default_config_path, load_config


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config == RouterConfig()
    assert config.pipeline_tuning().local_first_routing


def test_loads_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
data_dir = "{(tmp_path / 'data').as_posix()}"

[routing]
time_aware_routing = false
local_only_hours = [0, 1, 2]

[drift]
min_sample_size = 10
significance_threshold = 0.25

[suggestions]
confidence_floor = 0.9

[workers.mistral-7b]
local_capable = true
tier = "balanced"
tags = ["write"]
"""
    )
    config = load_config(path)

    assert not config.time_aware_routing
    assert config.local_only_hours == (0, 1, 2)
    assert config.data_dir == tmp_path / "data"
    assert config.drift_tuning().min_sample_size == 10
    assert config.drift_tuning().significance_threshold == pytest.approx(0.25)
    assert config.suggestion_tuning().confidence_floor == pytest.approx(0.9)

    registry = config.registry()
    assert registry.is_local_capable("mistral-7b")
    assert "smollm3" in registry


def test_invalid_values_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[drift]\nsignificance_threshold = 1.5\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_invalid_hours_rejected() -> None:
    with pytest.raises(ValueError):
        RouterConfig(local_only_hours=(25,))


def test_env_overrides_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "custom.toml"
    monkeypatch.setenv("ADAPTIVE_ROUTER_CONFIG", str(target))
    assert default_config_path() == target
