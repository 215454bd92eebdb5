"""Tests for the configuration template generator."""

import pytest
import yaml

from gitosu.config.settings import GitOsuSettings
from gitosu.config.template import (
    generate_config_template,
    get_default_config_path,
    write_config_template,
)


def test_template_is_valid_yaml_settings():
    data = yaml.safe_load(generate_config_template())
    settings = GitOsuSettings(**data)
    assert settings.managed_dir == "map"
    assert settings.archive_extensions == [".osz"]
    assert "commit_author_name" not in data


def test_template_documents_every_setting():
    template = generate_config_template()
    for field_name in GitOsuSettings.model_fields:
        assert field_name in template


def test_default_config_path(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_default_config_path() == tmp_path / ".config" / "gitosu" / "config.yaml"


def test_write_config_template(tmp_path):
    target = tmp_path / "nested" / "config.yaml"
    assert write_config_template(target) == target
    assert target.read_text(encoding="utf-8") == generate_config_template()


def test_write_config_template_refuses_overwrite(tmp_path):
    target = tmp_path / "config.yaml"
    target.write_text("mine")
    with pytest.raises(FileExistsError):
        write_config_template(target)
    write_config_template(target, force=True)
    assert target.read_text() != "mine"
