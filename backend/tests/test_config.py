from edoria.config import settings, validate_config


def test_default_config_is_valid():
    assert settings.conditions_path.exists()
    assert validate_config()


def test_missing_conditions_file_is_reported(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(settings, "conditions_path", tmp_path / "missing.json")

    assert not validate_config()
    assert "missing.json" in capsys.readouterr().out


def test_flee_dc_must_be_positive(monkeypatch, capsys):
    monkeypatch.setattr(settings, "flee_dc", 0)

    assert not validate_config()
    assert "EDORIA_FLEE_DC" in capsys.readouterr().out


def test_flee_dc_may_be_disabled(monkeypatch):
    monkeypatch.setattr(settings, "flee_dc", None)

    assert validate_config()
