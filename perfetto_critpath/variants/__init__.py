"""Critical path query variants."""

from perfetto_critpath.variants.catalog import (
    PLACEHOLDER_THREAD_NAME,
    QueryTabSpec,
    QueryVariant,
    SinkKind,
    TrackSpec,
    all_variants,
    get_variant,
    get_variant_for_command,
    register_variant
)

__all__ = [
    "PLACEHOLDER_THREAD_NAME",
    "QueryTabSpec",
    "QueryVariant",
    "SinkKind",
    "TrackSpec",
    "all_variants",
    "get_variant",
    "get_variant_for_command",
    "register_variant"
]
