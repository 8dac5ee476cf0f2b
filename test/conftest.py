import pytest

from tablecook import config


@pytest.fixture(autouse=True)
def settings(monkeypatch, tmp_path):
    """Provide fresh settings to each test, saving charts in a temporary directory."""
    for name in ("TABLECOOK_PLOTS_DIR", "TABLECOOK_DISPLAY_ROWS", "TABLECOOK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    fresh = config.Settings(plots_dir=str(tmp_path / "plots"))
    monkeypatch.setattr(config, "_settings", fresh)
    return fresh
