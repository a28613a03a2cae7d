import json
import os
import stat
from pathlib import Path

import pytest

from agent_payment.config import (
    HOME_ENV_VAR,
    ConfigKey,
    PaymentSettings,
    RuntimePaths,
    get_value,
    load_config,
    save_config,
    set_value,
    valid_keys,
)
from agent_payment.errors import InvalidConfigError, MissingConfigError
from agent_payment.wallet.networks import (
    NETWORK_PROFILES,
    apply_network_profile,
    get_profile,
    list_profile_names,
)
from agent_payment.wallet.resolver import NetworkOverrides, resolve_network


class TestRuntimePaths:
    def test_layout(self, tmp_path):
        paths = RuntimePaths.from_data_dir(tmp_path)
        assert paths.wallet_path == tmp_path / "wallet.json"
        assert paths.password_path == tmp_path / "password.txt"
        assert paths.config_path == tmp_path / "config.toml"

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
        assert RuntimePaths.default().data_dir == tmp_path

    def test_explicit_home_beats_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path / "env"))
        assert RuntimePaths.default(tmp_path / "flag").data_dir == tmp_path / "flag"

    def test_fallback_home(self, monkeypatch):
        monkeypatch.delenv(HOME_ENV_VAR, raising=False)
        assert RuntimePaths.default().data_dir == Path("~/.payment").expanduser()


class TestLoadSave:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")
        assert config == PaymentSettings()
        assert config.network.chain_id is None

    def test_round_trip(self, tmp_path):
        path = tmp_path / "config.toml"
        config = PaymentSettings()
        config.network.name = "test-network"
        config.network.chain_id = 12345
        config.payment.default_token_decimals = 6
        save_config(config, path)

        loaded = load_config(path)
        assert loaded.network.name == "test-network"
        assert loaded.network.chain_id == 12345
        assert loaded.payment.default_token_decimals == 6
        assert loaded.network.rpc_url is None

    def test_file_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[wallet]\npath = "~/w.json"\n\n'
            '[network]\nchain_id = 8453\nrpc_url = "https://mainnet.base.org"\n'
        )
        config = load_config(path)
        assert config.network.chain_id == 8453
        assert config.wallet.path == "~/w.json"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_saved_owner_only(self, tmp_path):
        path = tmp_path / "config.toml"
        save_config(PaymentSettings(), path)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[network\n")
        with pytest.raises(InvalidConfigError) as info:
            load_config(path)
        assert info.value.exit_code == 11

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_bytes(b'[network]\nname = "\xff"\n')
        with pytest.raises(InvalidConfigError) as info:
            load_config(path)
        assert info.value.exit_code == 11

    def test_invalid_value_type(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[network]\nchain_id = "not a number"\n')
        with pytest.raises(InvalidConfigError):
            load_config(path)


class TestWalletPaths:
    def test_defaults_come_from_runtime_paths(self, paths):
        config = PaymentSettings()
        assert config.wallet_path(paths) == paths.wallet_path
        assert config.password_path(paths) == paths.password_path

    def test_configured_paths_expand_tilde(self, paths):
        config = PaymentSettings()
        config.wallet.path = "~/keys/wallet.json"
        config.wallet.password_file = "/etc/pw.txt"
        assert config.wallet_path(paths) == Path.home() / "keys" / "wallet.json"
        assert config.password_path(paths) == Path("/etc/pw.txt")


class TestConfigKeys:
    def test_every_key_round_trips(self):
        config = PaymentSettings()
        samples = {
            ConfigKey.NETWORK_CHAIN_ID: "84532",
            ConfigKey.PAYMENT_DEFAULT_TOKEN_DECIMALS: "6",
        }
        for key in ConfigKey:
            value = samples.get(key, f"value-for-{key.value}")
            set_value(config, key, value)
            assert get_value(config, key) == value

    def test_typed_fields_are_parsed(self):
        config = PaymentSettings()
        set_value(config, ConfigKey.NETWORK_CHAIN_ID, "8453")
        assert config.network.chain_id == 8453

    def test_unset_key_is_none(self):
        assert get_value(PaymentSettings(), ConfigKey.NETWORK_RPC_URL) is None

    def test_unknown_key(self):
        with pytest.raises(InvalidConfigError) as info:
            ConfigKey.parse("network.colour")
        assert info.value.exit_code == 11

    @pytest.mark.parametrize(
        "key,value",
        [
            (ConfigKey.NETWORK_CHAIN_ID, "abc"),
            (ConfigKey.NETWORK_CHAIN_ID, "-1"),
            (ConfigKey.PAYMENT_DEFAULT_TOKEN_DECIMALS, "256"),
            (ConfigKey.PAYMENT_DEFAULT_TOKEN_DECIMALS, "six"),
        ],
    )
    def test_bad_values(self, key, value):
        with pytest.raises(InvalidConfigError):
            set_value(PaymentSettings(), key, value)

    def test_valid_keys(self):
        assert valid_keys() == [
            "wallet.path",
            "wallet.password_file",
            "network.name",
            "network.chain_id",
            "network.rpc_url",
            "payment.default_token",
            "payment.default_token_symbol",
            "payment.default_token_decimals",
            "payment.max_auto_payment",
        ]


class TestNetworkProfiles:
    def test_known_profiles(self):
        assert list_profile_names() == [
            "base-sepolia",
            "base-mainnet",
            "ethereum-sepolia",
            "ethereum-mainnet",
        ]
        assert get_profile("base-mainnet").chain_id == 8453

    def test_apply(self):
        config = PaymentSettings()
        apply_network_profile(config, "base-sepolia")
        assert config.network.name == "base-sepolia"
        assert config.network.chain_id == 84532
        assert config.network.rpc_url == "https://sepolia.base.org"
        assert config.payment.default_token == NETWORK_PROFILES["base-sepolia"].default_token
        assert config.payment.default_token_symbol == "USDC"
        assert config.payment.default_token_decimals == 6

    def test_apply_never_clears_unset_fields(self):
        config = PaymentSettings()
        apply_network_profile(config, "base-sepolia")
        config.payment.max_auto_payment = "5"
        apply_network_profile(config, "ethereum-sepolia")

        assert config.network.chain_id == 11155111
        assert config.network.rpc_url == "https://rpc.sepolia.org"
        assert config.payment.default_token == NETWORK_PROFILES["base-sepolia"].default_token
        assert config.payment.default_token_decimals == 6
        assert config.payment.max_auto_payment == "5"

    def test_unknown_profile(self):
        with pytest.raises(InvalidConfigError):
            apply_network_profile(PaymentSettings(), "dogechain")


class TestResolveNetwork:
    def test_stored_config(self, settings):
        network = resolve_network(NetworkOverrides(), settings)
        assert network.rpc_url == settings.network.rpc_url
        assert network.chain_id == settings.network.chain_id
        assert network.name == "base-sepolia"

    def test_overrides_win(self, settings):
        network = resolve_network(
            NetworkOverrides(rpc_url="http://other", chain_id=1), settings
        )
        assert network.rpc_url == "http://other"
        assert network.chain_id == 1

    def test_overrides_fill_missing_config(self):
        network = resolve_network(
            NetworkOverrides(rpc_url="http://other", chain_id=10), PaymentSettings()
        )
        assert (network.rpc_url, network.chain_id) == ("http://other", 10)

    def test_missing_fields_give_prompt(self):
        with pytest.raises(MissingConfigError) as info:
            resolve_network(NetworkOverrides(), PaymentSettings())

        assert info.value.exit_code == 10
        prompt = info.value.prompt
        assert prompt.missing_fields == ["network.rpc_url", "network.chain_id"]
        payload = json.loads(prompt.to_json())
        assert payload["error"] == "missing_config"
        assert set(payload) == {"error", "missing_fields", "prompt", "questions", "hint"}
        question = payload["questions"][0]
        assert question["field"] == "network"
        assert question["default"] == "base-sepolia"
        assert "base-mainnet" in question["examples"]
        assert "use-network" in payload["hint"]

    def test_only_chain_id_missing(self):
        config = PaymentSettings()
        config.network.rpc_url = "http://rpc"
        with pytest.raises(MissingConfigError) as info:
            resolve_network(NetworkOverrides(), config)
        assert info.value.prompt.missing_fields == ["network.chain_id"]

