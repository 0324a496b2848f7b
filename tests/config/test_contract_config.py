"""
Tests for contract_config: layered YAML + environment configuration and
the wiring of ContractOperations from a loaded config.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
import yaml

from contract_config import get_active_config
from contract_config.loader import environment_layer, merge_layer, parse_config
from contract_config.schema import DatabaseConfig
from contract_kernel.db.engine import reset_engine
from contract_kernel.db.immutability import unregister_immutability_listeners
from contract_kernel.domain.clock import DeterministicClock
from contract_services import ContractOperations, build_contract_operations
from tests.conftest import NOW, contractor_input, make_principal


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestLayering:
    def test_defaults_only(self):
        config = get_active_config(environ={})

        assert config.source == "defaults"
        assert config.database.url.startswith("postgresql://")
        assert config.database.statement_timeout_ms == 5000
        assert config.logging.level == "INFO"
        assert config.service.create_tables is False
        assert config.service.register_immutability_listeners is True

    def test_file_overrides_defaults_key_by_key(self, tmp_path):
        path = write_yaml(
            tmp_path / "local.yaml",
            {"database": {"url": "sqlite:///local.db", "pool_size": 3}},
        )

        config = get_active_config(path, environ={})

        assert config.source == str(path)
        assert config.database.url == "sqlite:///local.db"
        assert config.database.pool_size == 3
        assert config.database.max_overflow == 10

    def test_file_named_by_environment(self, tmp_path):
        path = write_yaml(tmp_path / "env.yaml", {"logging": {"level": "DEBUG"}})

        config = get_active_config(environ={"CONTRACT_CONFIG_FILE": str(path)})

        assert config.logging.level == "DEBUG"

    def test_environment_wins_over_file(self, tmp_path):
        path = write_yaml(tmp_path / "local.yaml", {"database": {"url": "sqlite:///file.db"}})

        config = get_active_config(
            path,
            environ={
                "DATABASE_URL": "sqlite:///env.db",
                "SQL_ECHO": "yes",
                "DB_STATEMENT_TIMEOUT_MS": "250",
            },
        )

        assert config.database.url == "sqlite:///env.db"
        assert config.database.echo is True
        assert config.database.statement_timeout_ms == 250

    def test_empty_environment_values_ignored(self):
        assert environment_layer({"DATABASE_URL": "", "LOG_LEVEL": ""}) == {}

    def test_config_is_frozen(self):
        config = get_active_config(environ={})

        with pytest.raises(AttributeError):
            config.database.url = "sqlite://"

    def test_load_is_logged_without_password(self, captured_logs):
        get_active_config(environ={"DATABASE_URL": "postgresql://app:s3cret@db:5432/x"})

        loaded = [r for r in captured_logs() if r["message"] == "contract_config_loaded"]
        assert loaded[0]["database_url"] == "postgresql://app:***@db:5432/x"
        assert "s3cret" not in str(captured_logs())


class TestMalformed:
    @pytest.mark.parametrize(
        "environ",
        [{"SQL_ECHO": "maybe"}, {"DB_POOL_SIZE": "many"}, {"DB_STATEMENT_TIMEOUT_MS": "1.5"}],
    )
    def test_bad_override_raises(self, environ):
        with pytest.raises(ValueError):
            get_active_config(environ=environ)

    def test_unknown_section(self):
        with pytest.raises(KeyError):
            merge_layer({}, {"cache": {"ttl": 1}})

    def test_unknown_key(self, tmp_path):
        path = write_yaml(tmp_path / "bad.yaml", {"database": {"hostname": "db"}})

        with pytest.raises(KeyError):
            get_active_config(path, environ={})

    def test_missing_url(self):
        with pytest.raises(KeyError):
            parse_config({"database": {"echo": True}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            get_active_config(path, environ={})


class TestMaskedUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://u:p@h:5432/d", "postgresql://u:***@h:5432/d"),
            ("postgresql://u@h/d", "postgresql://u@h/d"),
            ("sqlite:///contracts.db", "sqlite:///contracts.db"),
        ],
    )
    def test_password_hidden(self, url, expected):
        assert DatabaseConfig(url=url).masked_url == expected


class TestBuildContractOperations:
    @pytest.fixture
    def wired(self, tmp_path):
        path = write_yaml(
            tmp_path / "wired.yaml",
            {
                "database": {"url": f"sqlite:///{tmp_path / 'wired.db'}"},
                "service": {"create_tables": True},
            },
        )
        config = get_active_config(path, environ={})
        ops = build_contract_operations(config, clock=DeterministicClock(NOW))
        yield ops
        unregister_immutability_listeners()
        reset_engine()

    def test_operations_usable_after_wiring(self, wired):
        authority = make_principal("KGU_ZKH_ADMIN")

        view = wired.create_contract(authority, contractor_input(uuid4()))

        assert isinstance(wired, ContractOperations)
        assert wired.get_contract(authority, view.id).usage.total_cost == Decimal("0")
