from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from dualstore.config import (
    DEFAULT_SYNC_CHECK_ENTITIES,
    ConfigurationError,
    MissingConfigurationError,
    env_flag,
    env_list,
    get_database_config,
    get_replication_config,
    require_env_var,
    require_env_vars,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PRIMARY_DATABASE_URI",
        "SECONDARY_DATABASE_URI",
        "DUALSTORE_ECHO_SQL",
        "DUALSTORE_DUAL_MODE",
        "DUALSTORE_SYNC_ENTITIES",
    ):
        monkeypatch.delenv(name, raising=False)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.delenv("MISSING_A", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), (" on ", True), ("0", False), ("false", False), ("", True)],
)
def test_env_flag_parses_common_spellings(
    monkeypatch: pytest.MonkeyPatch, raw: str, *, expected: bool
) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert env_flag("EXAMPLE_FLAG", default=True) is expected


def test_env_flag_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "perhaps")

    with pytest.raises(ConfigurationError, match="EXAMPLE_FLAG"):
        env_flag("EXAMPLE_FLAG", default=False)


def test_env_list_splits_and_trims(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_LIST", " Category, ,Company ")

    assert env_list("EXAMPLE_LIST") == ("Category", "Company")
    monkeypatch.setenv("EXAMPLE_LIST", "  ")
    assert env_list("EXAMPLE_LIST") is None


def test_database_config_prefers_explicit_uris(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRIMARY_DATABASE_URI", "mysql+aiomysql://erp@db/primary")
    monkeypatch.setenv("SECONDARY_DATABASE_URI", "mysql+aiomysql://erp@db/secondary")
    monkeypatch.setenv("DUALSTORE_ECHO_SQL", "true")

    config = get_database_config()

    assert config.primary_uri == "mysql+aiomysql://erp@db/primary"
    assert config.secondary_uri == "mysql+aiomysql://erp@db/secondary"
    assert config.echo is True


def test_database_config_falls_back_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    data_dir = tmp_path / "data-dir"
    monkeypatch.setenv("DUALSTORE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("SECONDARY_DATABASE_URI", "sqlite+aiosqlite:///elsewhere.db")

    config = get_database_config()

    assert config.primary_uri == f"sqlite+aiosqlite:///{(data_dir / 'primary.db').resolve()}"
    assert config.secondary_uri == "sqlite+aiosqlite:///elsewhere.db"
    assert data_dir.exists()


def test_replication_config_defaults() -> None:
    config = get_replication_config()

    assert config.dual_mode is True
    assert config.sync_check_entities == DEFAULT_SYNC_CHECK_ENTITIES


def test_replication_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DUALSTORE_DUAL_MODE", "off")
    monkeypatch.setenv("DUALSTORE_SYNC_ENTITIES", "Quotation,Contract")

    config = get_replication_config()

    assert config.dual_mode is False
    assert config.sync_check_entities == ("Quotation", "Contract")
