"""SIM package: seeds a ledger with demo data."""

from .seed import ISeeder, Seeder

__all__ = ["ISeeder", "Seeder"]
