"""Configuration loading from TOML and environment variables."""

from __future__ import annotations

from pathlib import Path

import pytest

from escrow_ledger.config import load_config
from escrow_ledger.models.config import LedgerConfig

from tests.factories import ADMIN, OUTSIDER, SIGNER

ENV_VARS = ["DB_PATH", "ADMIN", "ALLOWED_SIGNER", "FEE", "DOMAIN_ID", "SIGNER_SECRET"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(f"ESCROW_LEDGER_{name}", raising=False)


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "ledger.toml"
    p.write_text(text)
    return p


def test_defaults_without_file():
    cfg = load_config(None)
    defaults = LedgerConfig()
    assert cfg.admin == ""
    assert cfg.initial_fee == defaults.initial_fee
    assert cfg.domain_id == defaults.domain_id
    assert cfg.db_path == str(Path(defaults.db_path).expanduser())


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg.admin == ""


def test_toml_sections(tmp_path):
    path = _write(tmp_path, f"""
[ledger]
admin = "{ADMIN}"
allowed_signer = "{SIGNER}"
initial_fee = 2.5
domain_id = "marketplace-v1"
log_level = "debug"

[storage]
db_path = "{tmp_path / 'ledger.db'}"

[signer]
secret = "SSECRET"
""")
    cfg = load_config(path)

    assert cfg.admin == ADMIN
    assert cfg.allowed_signer == SIGNER
    assert cfg.initial_fee == "2.5"
    assert cfg.domain_id == "marketplace-v1"
    assert cfg.log_level == "debug"
    assert cfg.db_path == str(tmp_path / "ledger.db")
    assert cfg.signer_secret == "SSECRET"


def test_zero_fee_in_toml(tmp_path):
    cfg = load_config(_write(tmp_path, "[ledger]\ninitial_fee = 0\n"))
    assert cfg.initial_fee == "0"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path, f'[ledger]\nadmin = "{ADMIN}"\ninitial_fee = "1"\n')
    monkeypatch.setenv("ESCROW_LEDGER_ADMIN", OUTSIDER)
    monkeypatch.setenv("ESCROW_LEDGER_FEE", "3")
    monkeypatch.setenv("ESCROW_LEDGER_DB_PATH", ":memory:")
    monkeypatch.setenv("ESCROW_LEDGER_SIGNER_SECRET", "SENV")
    monkeypatch.setenv("ESCROW_LEDGER_DOMAIN_ID", "env-domain")
    monkeypatch.setenv("ESCROW_LEDGER_ALLOWED_SIGNER", SIGNER)

    cfg = load_config(path)

    assert cfg.admin == OUTSIDER
    assert cfg.initial_fee == "3"
    assert cfg.db_path == ":memory:"
    assert cfg.signer_secret == "SENV"
    assert cfg.domain_id == "env-domain"
    assert cfg.allowed_signer == SIGNER


def test_custom_env_prefix(monkeypatch):
    monkeypatch.setenv("SHOP_ADMIN", ADMIN)
    assert load_config(None, env_prefix="SHOP_").admin == ADMIN


def test_db_path_expands_home(tmp_path):
    cfg = load_config(_write(tmp_path, '[storage]\ndb_path = "~/ledger.db"\n'))
    assert cfg.db_path == str(Path.home() / "ledger.db")
