"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from escrow_ledger.models.config import LedgerConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "ESCROW_LEDGER_",
) -> LedgerConfig:
    """Load ledger configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (ESCROW_LEDGER_ADMIN, etc.)
        2. TOML config file
        3. Defaults from LedgerConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = LedgerConfig()

    # ── Ledger section ─────────────────────────────────────
    ledger = raw.get("ledger", {})
    if v := ledger.get("admin"):
        cfg.admin = str(v)
    if v := ledger.get("allowed_signer"):
        cfg.allowed_signer = str(v)
    if (v := ledger.get("initial_fee")) is not None:
        cfg.initial_fee = str(v)
    if v := ledger.get("domain_id"):
        cfg.domain_id = str(v)
    if v := ledger.get("log_level"):
        cfg.log_level = str(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Signer section ─────────────────────────────────────
    signer = raw.get("signer", {})
    if v := signer.get("secret"):
        cfg.signer_secret = str(v)

    # ── Environment variable overrides (highest priority) ──
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if admin := os.environ.get(f"{env_prefix}ADMIN"):
        cfg.admin = admin
    if signer_pk := os.environ.get(f"{env_prefix}ALLOWED_SIGNER"):
        cfg.allowed_signer = signer_pk
    if fee := os.environ.get(f"{env_prefix}FEE"):
        cfg.initial_fee = fee
    if domain := os.environ.get(f"{env_prefix}DOMAIN_ID"):
        cfg.domain_id = domain
    if secret := os.environ.get(f"{env_prefix}SIGNER_SECRET"):
        cfg.signer_secret = secret

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
