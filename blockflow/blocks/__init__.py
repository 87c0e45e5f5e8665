from blockflow.blocks.catalog import (
    categories,
    get_block_by_id,
    get_blocks_by_network,
    get_blocks_by_type,
    get_network,
    networks,
    templates,
)
from blockflow.blocks.validator import validate_block_configuration

__all__ = [
    "categories",
    "get_block_by_id",
    "get_blocks_by_network",
    "get_blocks_by_type",
    "get_network",
    "networks",
    "templates",
    "validate_block_configuration",
]
