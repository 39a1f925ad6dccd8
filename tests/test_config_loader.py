import pytest

from homeservice.core.config_loader import get_serviceable_postal_codes, load_company_config


def test_default_company_config():
    config = load_company_config()
    assert config["company_name"]
    assert "560001" in get_serviceable_postal_codes(config)

def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_company_config(str(tmp_path / "missing.json"))

def test_invalid_config_file(tmp_path):
    path = tmp_path / "company_config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_company_config(str(path))

def test_env_override_wins(monkeypatch):
    monkeypatch.setenv("SERVICEABLE_PINCODES", " 110001, 110002 ,")
    assert get_serviceable_postal_codes({"serviceable_postal_codes": ["560001"]}) == ["110001", "110002"]

def test_codes_are_trimmed_strings(monkeypatch):
    monkeypatch.delenv("SERVICEABLE_PINCODES", raising=False)
    assert get_serviceable_postal_codes({"serviceable_postal_codes": [560001, " 560002 "]}) == ["560001", "560002"]
