import importlib

from plot_guard import config


def test_env_helpers_fall_back_on_bad_values(monkeypatch):
    monkeypatch.setenv("PG_TEST_INT", "12")
    monkeypatch.setenv("PG_TEST_FLOAT", "not-a-number")
    monkeypatch.setenv("PG_TEST_BOOL", "Off")
    monkeypatch.delenv("PG_TEST_MISSING", raising=False)

    assert config._env_int("PG_TEST_INT", 3) == 12
    assert config._env_float("PG_TEST_FLOAT", 2.5) == 2.5
    assert config._env_bool("PG_TEST_BOOL", True) is False
    assert config._env_bool("PG_TEST_MISSING", True) is True
    monkeypatch.setenv("PG_TEST_BOOL", "maybe")
    assert config._env_bool("PG_TEST_BOOL", True) is True


def test_defaults():
    assert config.MIN_VERTICES == 4
    assert config.MIN_AREA_SQ_METERS == 10.0
    assert config.OVERLAP_THRESHOLD_PERCENT == 5.0
    assert config.SYNC_PAGE_SIZE == 300
    assert config.METERS_PER_DEGREE_AT_EQUATOR == 111320.0


def test_environment_overrides_thresholds(monkeypatch):
    monkeypatch.setenv("OVERLAP_THRESHOLD_PERCENT", "12.5")
    monkeypatch.setenv("SYNC_PAGE_SIZE", "50")
    try:
        reloaded = importlib.reload(config)
        assert reloaded.OVERLAP_THRESHOLD_PERCENT == 12.5
        assert reloaded.SYNC_PAGE_SIZE == 50
    finally:
        monkeypatch.delenv("OVERLAP_THRESHOLD_PERCENT")
        monkeypatch.delenv("SYNC_PAGE_SIZE")
        importlib.reload(config)
