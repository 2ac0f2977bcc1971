# nftreg/config.py
"""
Registry configuration.

Loaded from a YAML file, a plain dict, or defaults, with environment
overrides for the storage location:

    backend: file            # memory | file
    data_path: ./nft_data.json
    chain_id: local
    default_limit: 10
    max_limit: 100
    namespaces:
      tokens: tokens
      tokens_owner: tokens__owner

Environment:
    NFTREG_BACKEND, NFTREG_DATA_PATH
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .storage import FileStorage, MemoryStorage, Storage

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "file")

DEFAULT_NAMESPACES = {
    "contract_info": "nft_info",
    "minter": "minter",
    "token_count": "num_tokens",
    "operators": "operators",
    "tokens": "tokens",
    "tokens_owner": "tokens__owner",
}


@dataclass
class RegistryConfig:
    """
    Settings for a TokenRegistry and its storage.

    Attributes:
        backend: Storage backend name (memory or file)
        data_path: Data file for the file backend
        chain_id: Chain id reported in BlockInfo built by the CLI
        default_limit: Page size when a listing gives no limit
        max_limit: Upper bound applied to any requested page size
        namespaces: Storage namespace per component
    """
    backend: str = "memory"
    data_path: Optional[Path] = None
    chain_id: str = ""
    default_limit: int = 10
    max_limit: int = 100
    namespaces: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_NAMESPACES))

    def __post_init__(self):
        if self.data_path is not None:
            self.data_path = Path(self.data_path)
        merged = dict(DEFAULT_NAMESPACES)
        merged.update(self.namespaces or {})
        self.namespaces = merged
        self.validate()

    def validate(self):
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend} (expected one of {BACKENDS})")
        if self.backend == "file" and self.data_path is None:
            raise ValueError("The file backend needs data_path")
        if self.default_limit < 1 or self.max_limit < 1:
            raise ValueError("Page limits must be positive")
        if self.default_limit > self.max_limit:
            raise ValueError("default_limit cannot exceed max_limit")
        unknown = set(self.namespaces) - set(DEFAULT_NAMESPACES)
        if unknown:
            raise ValueError(f"Unknown namespaces: {sorted(unknown)}")
        values = list(self.namespaces.values())
        if len(set(values)) != len(values):
            raise ValueError("Namespaces must be distinct")

    def page_limit(self, limit: Optional[int]) -> int:
        """Resolve a requested page size against the configured limits."""
        if limit is None:
            return self.default_limit
        return max(0, min(limit, self.max_limit))

    def open_storage(self) -> Storage:
        if self.backend == "file":
            logger.debug(f"Opening file storage at {self.data_path}")
            return FileStorage(self.data_path)
        return MemoryStorage()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "backend": self.backend,
            "chain_id": self.chain_id,
            "default_limit": self.default_limit,
            "max_limit": self.max_limit,
            "namespaces": dict(self.namespaces),
        }
        if self.data_path:
            data["data_path"] = str(self.data_path)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        data = dict(data or {})
        backend = os.environ.get("NFTREG_BACKEND", data.get("backend", "memory"))
        data_path = os.environ.get("NFTREG_DATA_PATH", data.get("data_path"))
        return cls(
            backend=backend,
            data_path=Path(data_path) if data_path else None,
            chain_id=str(data.get("chain_id", "")),
            default_limit=int(data.get("default_limit", 10)),
            max_limit=int(data.get("max_limit", 100)),
            namespaces=data.get("namespaces") or {},
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RegistryConfig":
        data = yaml.safe_load(yaml_content) or {}
        if not isinstance(data, dict):
            raise ValueError("Registry config must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path | str) -> "RegistryConfig":
        with open(path) as f:
            return cls.from_yaml(f.read())
