"""
Layer name filtering applied wherever layer names leave the parser.
"""
from typing import Iterable

DEFAULT_LAYER = "0"

# Keys of the parsed document structure that are not layers
SYSTEM_LAYERS = frozenset({"handle", "ownerHandle", "layers"})


def filter_layers(names: Iterable) -> list[str]:
    """
    Drop system keys and blank names, keep first-seen order and make
    sure the default layer "0" is present.
    """
    result: list[str] = []
    seen: set[str] = set()

    for name in names:
        if name is None:
            continue
        name = str(name)
        if not name.strip() or name in SYSTEM_LAYERS or name in seen:
            continue
        seen.add(name)
        result.append(name)

    if DEFAULT_LAYER not in seen:
        result.insert(0, DEFAULT_LAYER)
    return result


def layers_of(features) -> list[str]:
    """Filtered layer names of a feature sequence."""
    return filter_layers(feature.layer for feature in features)
