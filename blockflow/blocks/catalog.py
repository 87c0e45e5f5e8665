"""Load and query the static block catalog (catalog.yaml).

The catalog is bundled package data. It is read once, validated into
BlockDefinition / Network / WorkflowTemplate objects and cached for the life
of the process.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from blockflow.types import BlockDefinition, Network, WorkflowTemplate

_CATALOG_PATH = Path(__file__).parent / "catalog.yaml"


class CatalogFile(BaseModel):
    """Top-level shape of catalog.yaml."""
    networks: list[Network] = Field(default_factory=list)
    nodit: dict[str, list[BlockDefinition]] = Field(default_factory=dict)
    ai: dict[str, list[BlockDefinition]] = Field(default_factory=dict)
    templates: list[WorkflowTemplate] = Field(default_factory=list)


def load_catalog(path: Optional[Path] = None) -> CatalogFile:
    """Parse catalog.yaml → CatalogFile. Raises FileNotFoundError for a bad explicit path."""
    resolved = Path(path) if path is not None else _CATALOG_PATH
    if not resolved.exists():
        raise FileNotFoundError(f"Block catalog not found: {resolved}")
    raw = yaml.safe_load(resolved.read_text())
    return CatalogFile.model_validate(raw or {})


@lru_cache(maxsize=1)
def _catalog() -> CatalogFile:
    return load_catalog()


def _nodit_blocks() -> list[BlockDefinition]:
    return [b for blocks in _catalog().nodit.values() for b in blocks]


def _all_blocks() -> list[BlockDefinition]:
    return _nodit_blocks() + [b for blocks in _catalog().ai.values() for b in blocks]


def get_block_by_id(block_id: str) -> Optional[BlockDefinition]:
    for block in _all_blocks():
        if block.id == block_id:
            return block
    return None


def get_blocks_by_type(block_type: str) -> list[BlockDefinition]:
    return [b for b in _all_blocks() if b.type.value == block_type]


def get_blocks_by_network(network_id: str) -> list[BlockDefinition]:
    """Nodit blocks runnable on *network_id*. AI blocks are network-agnostic and excluded."""
    return [b for b in _nodit_blocks() if network_id in b.networks]


def categories() -> dict:
    """Catalog grouped the way the builder UI consumes it: nodit / ai / all."""
    cat = _catalog()
    nodit = {name: [b.model_dump(mode="json") for b in blocks] for name, blocks in cat.nodit.items()}
    ai = {name: [b.model_dump(mode="json") for b in blocks] for name, blocks in cat.ai.items()}
    return {"nodit": nodit, "ai": ai, "all": {**nodit, **ai}}


def networks() -> list[Network]:
    return list(_catalog().networks)


def get_network(network_id: str) -> Optional[Network]:
    for network in _catalog().networks:
        if network.id == network_id:
            return network
    return None


def templates() -> list[WorkflowTemplate]:
    return list(_catalog().templates)
