"""
Unit tests for the language server settings model.
"""

import pytest

from lsp_settings import BinarySettings, LspSettings


class TestBinarySettings:
    def test_defaults(self):
        settings = BinarySettings()
        assert settings.path is None
        assert settings.arguments is None
        assert settings.env == {}
        assert not settings.has_override

    def test_from_dict(self):
        settings = BinarySettings.from_dict(
            {"path": "/opt/emmylua_ls", "arguments": ["-c", "stdio"], "env": {"A": "1"}}
        )
        assert settings.has_override
        assert settings.path == "/opt/emmylua_ls"
        assert settings.arguments == ["-c", "stdio"]
        assert settings.env == {"A": "1"}

    def test_arguments_without_path_is_not_override(self):
        settings = BinarySettings.from_dict({"arguments": ["--log-level", "debug"]})
        assert not settings.has_override
        assert settings.arguments == ["--log-level", "debug"]

    def test_non_string_path(self):
        with pytest.raises(ValueError, match="binary.path must be a string"):
            BinarySettings(path=42)  # type: ignore[arg-type]

    def test_blank_path(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            BinarySettings(path="   ")

    def test_non_string_arguments(self):
        with pytest.raises(ValueError, match="binary.arguments"):
            BinarySettings.from_dict({"path": "x", "arguments": ["-c", 3]})

    def test_non_string_env(self):
        with pytest.raises(ValueError, match="binary.env"):
            BinarySettings.from_dict({"env": {"A": 1}})

    def test_non_dict(self):
        with pytest.raises(ValueError, match="must be a dictionary"):
            BinarySettings.from_dict(["/opt/emmylua_ls"])  # type: ignore[arg-type]


class TestLspSettings:
    def test_empty(self):
        settings = LspSettings.from_dict(None)
        assert settings.version == "latest"
        assert settings.user_configuration() == {}

    def test_version_pin(self):
        settings = LspSettings.from_dict({"version": " 0.9.0 "})
        assert settings.version == "0.9.0"

    def test_empty_version_means_latest(self):
        assert LspSettings.from_dict({"version": ""}).version == "latest"

    def test_opaque_options_kept_verbatim(self):
        options = {"runtime": {"version": "Lua5.4"}, "futureKey": [1, {"x": None}]}
        settings = LspSettings.from_dict({"initialization_options": options})
        assert settings.initialization_options == options

    def test_initialization_options_must_be_mapping(self):
        with pytest.raises(ValueError, match="initialization_options must be a dictionary"):
            LspSettings.from_dict({"initialization_options": ["runtime"]})

    def test_user_configuration_layers_settings_beneath_options(self):
        settings = LspSettings.from_dict(
            {
                "settings": {
                    "runtime": {"version": "Lua5.1"},
                    "hint": {"enable": False},
                },
                "initialization_options": {"runtime": {"version": "Lua5.4"}},
            }
        )
        assert settings.user_configuration() == {
            "runtime": {"version": "Lua5.4"},
            "hint": {"enable": False},
        }

    def test_non_dict(self):
        with pytest.raises(ValueError):
            LspSettings.from_dict("emmylua")  # type: ignore[arg-type]
