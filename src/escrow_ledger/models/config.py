"""Configuration models for the ledger."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LedgerConfig:
    """Complete ledger configuration."""

    # Ledger
    admin: str = ""  # Stellar account id of the escrow admin
    allowed_signer: str = ""  # public key that signs shipping authorizations
    initial_fee: str = "1"  # percent, human readable
    domain_id: str = "Test SDF Network ; September 2015"
    log_level: str = "info"

    # Storage
    db_path: str = "~/.escrow_ledger/ledger.db"

    # Signer (only needed to issue shipping authorizations)
    signer_secret: str = ""  # loaded from env var ESCROW_LEDGER_SIGNER_SECRET
