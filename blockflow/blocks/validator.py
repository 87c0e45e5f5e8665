"""
Block configuration checker.

Runs every check even if earlier ones fail, so the caller gets the full error
list in one shot. Warnings never flip ``valid``.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from blockflow.blocks.catalog import get_block_by_id
from blockflow.exceptions import BlockNotFound
from blockflow.types import BlockValidation


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a switch value is never a numeric bound
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_block_configuration(
    block_id: str,
    parameters: Optional[dict[str, Any]] = None,
    network_id: Optional[str] = None,
) -> BlockValidation:
    """
    Validate a block's parameters and target network against its catalog entry.

    Args:
        block_id:   Catalog block ID.
        parameters: Parameter values as entered in the builder.
        network_id: Target network; only checked for Nodit blocks.

    Returns:
        BlockValidation with ``valid``, ``errors`` and ``warnings``.

    Raises:
        BlockNotFound: If ``block_id`` is not in the catalog.
    """
    block = get_block_by_id(block_id)
    if block is None:
        raise BlockNotFound(f"Block not found: {block_id}", block_id=block_id)

    parameters = parameters or {}
    result = BlockValidation()

    for name, spec in block.parameters.items():
        value = parameters.get(name)

        if spec.required and (value is None or value == ""):
            result.valid = False
            result.errors.append(f"Parameter '{name}' is required")
            continue

        if value is None or spec.validation is None:
            continue

        rules = spec.validation
        if rules.min is not None and _is_number(value) and value < rules.min:
            result.valid = False
            result.errors.append(f"Parameter '{name}' must be at least {rules.min:g}")
        if rules.max is not None and _is_number(value) and value > rules.max:
            result.valid = False
            result.errors.append(f"Parameter '{name}' must be at most {rules.max:g}")
        if rules.pattern and isinstance(value, str) and not re.search(rules.pattern, value):
            result.valid = False
            result.errors.append(f"Parameter '{name}' format is invalid")

    result.warnings.extend(_option_warnings(block.parameters, parameters))

    unknown = sorted(set(parameters) - set(block.parameters))
    for name in unknown:
        result.warnings.append(f"Parameter '{name}' is not used by block '{block_id}'")

    if block.networks and network_id and network_id not in block.networks:
        result.valid = False
        result.errors.append(f"Block '{block_id}' is not supported on network '{network_id}'")

    return result


def _option_warnings(specs: dict, parameters: dict[str, Any]) -> list[str]:
    warnings = []
    for name, spec in specs.items():
        value = parameters.get(name)
        if spec.options and value not in (None, "") and value not in spec.options:
            warnings.append(f"Parameter '{name}' should be one of: {', '.join(spec.options)}")
    return warnings
