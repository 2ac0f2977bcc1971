# tests/test_config.py
"""Tests for registry configuration."""

import pytest

from nftreg.config import DEFAULT_NAMESPACES, RegistryConfig
from nftreg.storage import FileStorage, MemoryStorage


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("NFTREG_BACKEND", raising=False)
    monkeypatch.delenv("NFTREG_DATA_PATH", raising=False)


class TestRegistryConfig:
    """Test RegistryConfig loading and validation."""

    def test_defaults(self):
        config = RegistryConfig()
        assert config.backend == "memory"
        assert config.namespaces == DEFAULT_NAMESPACES
        assert config.page_limit(None) == 10
        assert config.page_limit(1000) == 100
        assert isinstance(config.open_storage(), MemoryStorage)

    def test_from_yaml(self, tmp_path):
        yaml_content = f"""
backend: file
data_path: {tmp_path / "nft.json"}
chain_id: testnet
default_limit: 5
max_limit: 20
namespaces:
  tokens: nfts
"""
        config = RegistryConfig.from_yaml(yaml_content)
        assert config.backend == "file"
        assert config.chain_id == "testnet"
        assert config.page_limit(None) == 5
        assert config.namespaces["tokens"] == "nfts"
        assert config.namespaces["operators"] == "operators"
        assert isinstance(config.open_storage(), FileStorage)

    def test_from_file(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text("default_limit: 3\n")
        assert RegistryConfig.from_file(path).default_limit == 3

    def test_empty_yaml(self):
        assert RegistryConfig.from_yaml("").backend == "memory"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NFTREG_BACKEND", "file")
        monkeypatch.setenv("NFTREG_DATA_PATH", str(tmp_path / "env.json"))
        config = RegistryConfig.from_dict({"backend": "memory"})
        assert config.backend == "file"
        assert config.data_path == tmp_path / "env.json"

    @pytest.mark.parametrize("data", [
        {"backend": "redis"},
        {"backend": "file"},
        {"default_limit": 50, "max_limit": 10},
        {"default_limit": 0},
        {"namespaces": {"bogus": "x"}},
        {"namespaces": {"tokens": "operators"}},
    ])
    def test_invalid(self, data):
        with pytest.raises(ValueError):
            RegistryConfig.from_dict(data)

    def test_yaml_must_be_mapping(self):
        with pytest.raises(ValueError):
            RegistryConfig.from_yaml("- a\n- b\n")

    def test_to_dict(self, tmp_path):
        config = RegistryConfig(backend="file", data_path=tmp_path / "x.json")
        restored = RegistryConfig.from_dict(config.to_dict())
        assert restored == config
