"""Tests for ClientConfig and YAML/env loading."""

from pathlib import Path

import pytest
import yaml

from resilient_llm.config import ClientConfig, load_config
from resilient_llm.errors import ConfigurationError


class TestClientConfig:
    def test_defaults(self):
        c = ClientConfig()
        assert c.llm_api_key == ""
        assert c.llm_base_url == ""
        assert c.llm_model is None
        assert c.debug is False
        assert c.timeout == 120

    def test_camel_case_aliases(self):
        c = ClientConfig.model_validate(
            {"llmApiKey": "k", "llmBaseUrl": "http://x/v1/chat", "llmModel": "m"}
        )
        assert c.llm_api_key == "k"
        assert c.llm_base_url == "http://x/v1/chat"
        assert c.llm_model == "m"

    def test_snake_case_kwargs(self):
        c = ClientConfig(llm_api_key="k", llm_base_url="http://x")
        assert c.llm_api_key == "k"

    def test_require_credentials_ok(self):
        ClientConfig(llm_api_key="k", llm_base_url="http://x").require_credentials()

    @pytest.mark.parametrize(
        ("key", "url", "missing"),
        [
            ("", "http://x", ["llm_api_key"]),
            ("k", "", ["llm_base_url"]),
            ("  ", "  ", ["llm_api_key", "llm_base_url"]),
        ],
    )
    def test_require_credentials_missing(self, key, url, missing):
        c = ClientConfig(llm_api_key=key, llm_base_url=url)
        with pytest.raises(ConfigurationError) as exc_info:
            c.require_credentials()
        assert exc_info.value.context["missing"] == missing
        assert exc_info.value.context["error_type"] == "configuration"


class TestLoadConfig:
    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "resilient_llm.yaml"
        path.write_text(yaml.dump({
            "llm_api_key": "file-key",
            "llm_base_url": "http://file/v1/chat/completions",
            "debug": True,
        }))
        config, resolved = load_config(path, environ={})
        assert config.llm_api_key == "file-key"
        assert config.debug is True
        assert resolved == path.resolve()

    def test_camel_case_yaml(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"llmApiKey": "k", "llmBaseUrl": "http://u"}))
        config, _ = load_config(path, environ={})
        assert config.llm_api_key == "k"
        assert config.llm_base_url == "http://u"

    def test_env_overrides_file(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"llmApiKey": "file-key", "llm_model": "file-model"}))
        config, _ = load_config(
            path,
            environ={
                "RESILIENT_LLM_API_KEY": "env-key",
                "RESILIENT_LLM_MODEL": "env-model",
                "RESILIENT_LLM_DEBUG": "true",
            },
        )
        assert config.llm_api_key == "env-key"
        assert config.llm_model == "env-model"
        assert config.debug is True

    def test_empty_env_values_ignored(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"llm_api_key": "file-key"}))
        config, _ = load_config(path, environ={"RESILIENT_LLM_API_KEY": ""})
        assert config.llm_api_key == "file-key"

    def test_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_config("/tmp/nonexistent_resilient_llm_12345.yaml", environ={})

    def test_empty_file_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config, resolved = load_config(path, environ={})
        assert config == ClientConfig()
        assert resolved is not None

    def test_no_file_found(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("resilient_llm.config._SEARCH_PATHS", [tmp_path / "missing.yaml"])
        config, resolved = load_config(environ={"RESILIENT_LLM_BASE_URL": "http://env"})
        assert resolved is None
        assert config.llm_base_url == "http://env"

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("invalid: yaml: content: [[[")
        with pytest.raises(yaml.YAMLError):
            load_config(path, environ={})
