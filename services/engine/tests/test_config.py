from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from tectonic_globe_engine.logging_config import setup_logging
from tectonic_globe_engine.models import PickRequest, WorldConfig
from tectonic_globe_engine.settings import load_settings
from tectonic_globe_engine.utils import seed_from_text


def test_defaults_match_reference_scenario():
    config = WorldConfig()

    assert (config.seed, config.plateSimDetail, config.worldDetail, config.plateCount, config.steps) == (
        "42",
        2,
        3,
        10,
        5,
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"plateSimDetail": 0, "plateCount": 1000},
        {"plateSimDetail": 0, "plateCount": 13},
        {"plateCount": 0},
        {"worldDetail": -1},
        {"plateSimDetail": 9},
        {"steps": -2},
        {"heightAmplitude": 0.0},
        {"heightAmplitude": 1.5},
    ],
)
def test_invalid_configs_are_rejected(overrides):
    with pytest.raises(ValidationError):
        WorldConfig(**overrides)


def test_seed_hash_is_stable_and_text_sensitive():
    assert seed_from_text("42") == seed_from_text("42")
    assert seed_from_text("42") != seed_from_text("43")
    assert 0 <= seed_from_text("anything") < 2**64


def test_pick_request_needs_exactly_one_source():
    with pytest.raises(ValidationError):
        PickRequest()
    with pytest.raises(ValidationError):
        PickRequest(cameraPosition=(0.0, 0.0, 3.0), ray={"origin": (0.0, 0.0, 3.0), "direction": (0.0, 0.0, -1.0)})
    assert PickRequest(cameraPosition=(0.0, 0.0, 3.0)).ray is None


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("TG_LOG_LEVEL", "debug")
    monkeypatch.setenv("TG_MAX_WORKERS", "0")
    monkeypatch.setenv("TG_STEP_TIME_LIMIT_S", "2.5")
    monkeypatch.setenv("TG_LOG_FILE", "engine.log")

    settings = load_settings()

    assert settings.log_level == "DEBUG"
    assert settings.max_workers == 1
    assert settings.step_time_limit_s == 2.5
    assert settings.log_file == "engine.log"


def test_setup_logging_does_not_duplicate_handlers():
    setup_logging(logging.WARNING)
    setup_logging("INFO")

    logger = logging.getLogger("tectonic_globe_engine")
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_setup_logging_writes_thread_names_to_file(tmp_path):
    log_path = tmp_path / "engine.log"
    logger = setup_logging("DEBUG", str(log_path))
    try:
        logging.getLogger("tectonic_globe_engine.modules.mesh").info("icosphere ready")
    finally:
        setup_logging("INFO")

    assert len(logger.handlers) == 1
    line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
    assert "[MainThread]" in line
    assert line.endswith("tectonic_globe_engine.modules.mesh: icosphere ready")
