"""Tests for the PolyORM configuration layer."""

import pytest
from sqlalchemy.orm import Session, scoped_session

from polyorm.config import (
    CONFIG_PATH_ENV,
    PolyConfig,
    RegistryConfig,
    configure,
    get_config,
    reset_config,
    use_config,
)
from polyorm.exceptions import ConfigNotSetError
from tests.models import Card, Comment, Note, Post


class TestRegistryConfig:
    def test_lookups_in_both_directions(self):
        config = RegistryConfig(registry={"cards": Card, "posts": Post})

        assert config.get_model("cards") is Card
        assert config.get_table(Post) == "posts"

    def test_unknown_keys_return_none(self):
        config = RegistryConfig(registry={"cards": Card})

        assert config.get_model("unknown_table") is None
        assert config.get_table(Note) is None

    def test_session_factory_is_optional(self):
        assert RegistryConfig(registry={}).get_session() is None

    def test_session_factory_is_called(self, session_factory):
        config = RegistryConfig(registry={}, session_factory=session_factory)

        assert isinstance(config.get_session(), Session)

    def test_custom_config_subclass(self):
        class PrefixConfig(PolyConfig):
            def get_model(self, table_name):
                return {"app_cards": Card}.get(table_name)

            def get_table(self, model_cls):
                return "app_cards" if model_cls is Card else None

        config = PrefixConfig()

        assert config.get_model("app_cards") is Card
        assert config.get_session() is None


class TestGlobalConfig:
    def test_missing_config_raises(self, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        reset_config()

        with pytest.raises(ConfigNotSetError):
            get_config()

    def test_configure_and_get(self):
        config = RegistryConfig(registry={"cards": Card})
        configure(config)

        assert get_config() is config

    def test_use_config_restores_previous(self, poly_config):
        temporary = RegistryConfig(registry={"comments": Comment})

        with use_config(temporary) as active:
            assert active is temporary
            assert get_config() is temporary

        assert get_config() is poly_config

    def test_falls_back_to_env_yaml(self, tmp_path, monkeypatch):
        config_file = tmp_path / "polyorm.yaml"
        config_file.write_text("registry:\n  cards: tests.models.Card\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))
        reset_config()

        config = get_config()

        assert config.get_model("cards") is Card
        assert get_config() is config


class TestFromYaml:
    def test_resolves_class_paths(self, tmp_path):
        config_file = tmp_path / "polyorm.yaml"
        config_file.write_text("registry:\n  test_cards: tests.models.Card\n  test_posts: tests.models.Post\n")

        config = RegistryConfig.from_yaml(config_file)

        assert config.registry == {"test_cards": Card, "test_posts": Post}
        assert config.get_table(Card) == "test_cards"
        assert config.session_factory is None

    def test_builds_session_factory_from_database_url(self, tmp_path):
        config_file = tmp_path / "polyorm.yaml"
        config_file.write_text("registry:\n  test_cards: tests.models.Card\ndatabase:\n  url: 'sqlite://'\n")

        config = RegistryConfig.from_yaml(config_file)

        assert isinstance(config.session_factory, scoped_session)
        session = config.get_session()
        assert isinstance(session, Session)
        config.session_factory.remove()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RegistryConfig.from_yaml(tmp_path / "missing.yaml")

    def test_non_mapping_registry_raises(self, tmp_path):
        config_file = tmp_path / "polyorm.yaml"
        config_file.write_text("registry:\n  - tests.models.Card\n")

        with pytest.raises(TypeError):
            RegistryConfig.from_yaml(config_file)

    def test_non_mapping_file_raises(self, tmp_path):
        config_file = tmp_path / "polyorm.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(TypeError):
            RegistryConfig.from_yaml(config_file)
