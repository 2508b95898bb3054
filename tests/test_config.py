"""
Pytest tests for TransferConfig loading.
"""

from __future__ import annotations

import pytest

from avail_transfer.config import DEFAULT_NODE_URL, NODE_URL_ENV, TransferConfig


@pytest.fixture(autouse=True)
def no_endpoint_env(monkeypatch):
    monkeypatch.delenv(NODE_URL_ENV, raising=False)


def test_defaults():
    config = TransferConfig.load()

    assert config.node_url == DEFAULT_NODE_URL
    assert config.ss58_format == 42
    assert config.crypto_type == "sr25519"
    assert config.finalization_timeout == 600.0
    assert config.transfer_call == "transfer_keep_alive"


def test_load_yaml_overrides_defaults(tmp_path):
    path = tmp_path / "transfer.yaml"
    path.write_text(
        "node_url: ws://127.0.0.1:9944\n"
        "finalization_timeout: null\n"
        "display_decimals: 6\n"
        "type_registry:\n"
        "  signed_extensions:\n"
        "    CheckAppId:\n"
        "      extrinsic:\n"
        "        app_id: Compact<u32>\n"
        "      additionalSigned: {}\n",
        encoding="utf-8",
    )

    config = TransferConfig.load(str(path))

    assert config.node_url == "ws://127.0.0.1:9944"
    assert config.finalization_timeout is None
    assert config.display_decimals == 6
    assert config.type_registry["signed_extensions"]["CheckAppId"]["extrinsic"] == {"app_id": "Compact<u32>"}
    assert config.ss58_format == 42


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "transfer.yaml"
    path.write_text("ss58_format: 0\nwallet_storage: true\n", encoding="utf-8")

    config = TransferConfig.load(str(path))

    assert config.ss58_format == 0
    assert not hasattr(config, "wallet_storage")


def test_missing_file_uses_defaults(tmp_path):
    config = TransferConfig.load(str(tmp_path / "missing.yaml"))
    assert config == TransferConfig()


def test_broken_yaml_uses_defaults(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("node_url: [unclosed\n", encoding="utf-8")

    assert TransferConfig.load(str(path)) == TransferConfig()


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert TransferConfig.load(str(path)) == TransferConfig()


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "transfer.yaml"
    path.write_text("node_url: ws://from-file:9944\n", encoding="utf-8")
    monkeypatch.setenv(NODE_URL_ENV, "ws://from-env:9944")

    assert TransferConfig.load(str(path)).node_url == "ws://from-env:9944"


def test_with_endpoint():
    config = TransferConfig(display_decimals=2)

    updated = config.with_endpoint("ws://other:9944")

    assert updated.node_url == "ws://other:9944"
    assert updated.display_decimals == 2
    assert config.node_url == DEFAULT_NODE_URL
    assert config.with_endpoint(None) is config


@pytest.mark.parametrize("kwargs", [
    {"crypto_type": "ecdsa"},
    {"finalization_timeout": 0},
    {"display_decimals": -1},
])
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TransferConfig(**kwargs)


def test_non_mapping_file_uses_defaults(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- node_url\n- ws://127.0.0.1:9944\n", encoding="utf-8")

    assert TransferConfig.load(str(path)) == TransferConfig()


def test_scalar_file_uses_defaults(tmp_path):
    path = tmp_path / "scalar.yaml"
    path.write_text("ws://127.0.0.1:9944\n", encoding="utf-8")

    assert TransferConfig.load(str(path)) == TransferConfig()


def test_quoted_numbers_are_coerced(tmp_path):
    path = tmp_path / "transfer.yaml"
    path.write_text("finalization_timeout: '600'\nss58_format: '0'\n", encoding="utf-8")

    config = TransferConfig.load(str(path))

    assert config.finalization_timeout == 600.0
    assert config.ss58_format == 0


@pytest.mark.parametrize("body", [
    "finalization_timeout: soon\n",
    "ss58_format: [42]\n",
    "display_decimals: true\n",
    "node_url: 9944\n",
    "type_registry: CheckAppId\n",
])
def test_wrongly_typed_value_raises_value_error(tmp_path, body):
    path = tmp_path / "transfer.yaml"
    path.write_text(body, encoding="utf-8")

    with pytest.raises(ValueError):
        TransferConfig.load(str(path))
