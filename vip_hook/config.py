"""
Configuration management for the hook and the batch prover.
"""
import json
import os
from dataclasses import dataclass, asdict

from .core import MAX_PER_USER, MAX_USERS, TIER_NUM


@dataclass
class BatchConfig:
    """Aggregation batch shape."""
    max_per_user: int = MAX_PER_USER
    max_users: int = MAX_USERS
    tier_num: int = TIER_NUM
    strict: bool = False  # raise on invalid receipts / misordered tiers
    max_workers: int = 4

    @property
    def max_receipts(self) -> int:
        return self.max_per_user * self.max_users


@dataclass
class FeeConfig:
    """Swap fee and discount application settings."""
    default_protocol_share_ppm: int = 0
    enforce_epoch_order: bool = False
    isolate_batch_failures: bool = False


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "./vip_hook_data"
    write_buffer_size: int = 64 * 1024 * 1024  # 64MB
    max_open_files: int = 1000


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Complete configuration."""
    batch: BatchConfig
    fees: FeeConfig
    database: DatabaseConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            batch=BatchConfig(),
            fees=FeeConfig(),
            database=DatabaseConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            batch=BatchConfig(**data.get('batch', {})),
            fees=FeeConfig(**data.get('fees', {})),
            database=DatabaseConfig(**data.get('database', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'batch': asdict(self.batch),
            'fees': asdict(self.fees),
            'database': asdict(self.database),
            'monitoring': asdict(self.monitoring)
        }
