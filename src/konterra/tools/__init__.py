"""Konterra tools: the user-scoped operations behind the API and CLI.

Re-exports the public symbols so callers can ``from konterra.tools import X``.
"""

from konterra.tools._schema import (
    ConnectionType,
    FavorDirection,
    FavorStatus,
    FavorType,
    FavorValue,
    InteractionType,
    IntroductionStatus,
    WishlistPriority,
    WishlistStatus,
)
from konterra.tools.aggregates import country_connections, network_metrics
from konterra.tools.connections import (
    connection_create,
    connection_delete,
    connection_list_all,
    connection_list_for_contact,
    connections_import,
)
from konterra.tools.contacts import (
    contact_create,
    contact_delete,
    contact_get,
    contact_get_or_create_self,
    contact_list,
    contact_update,
)
from konterra.tools.countries import (
    contact_country_add,
    contact_country_delete,
    contact_country_list,
    visited_add,
    visited_list,
    visited_remove,
    wishlist_list,
    wishlist_remove,
    wishlist_upsert,
)
from konterra.tools.dedup import duplicate_groups, find_duplicate_groups
from konterra.tools.enrichment import (
    CONTACTS,
    TRIPS,
    EnrichmentResult,
    EnrichmentTarget,
    EntityKind,
    enrich_batch,
    enrichment_target,
)
from konterra.tools.interactions import (
    favor_create,
    favor_list,
    interaction_list,
    interaction_log,
    introduction_create,
    introduction_list,
)
from konterra.tools.merge import contact_merge
from konterra.tools.tags import tag_create, tag_delete, tag_list, tag_rename
from konterra.tools.trips import (
    trip_create,
    trip_delete,
    trip_list,
    trips_create_bulk,
    trips_delete_all,
)

__all__ = [
    "CONTACTS",
    "TRIPS",
    "ConnectionType",
    "EnrichmentResult",
    "EnrichmentTarget",
    "EntityKind",
    "FavorDirection",
    "FavorStatus",
    "FavorType",
    "FavorValue",
    "InteractionType",
    "IntroductionStatus",
    "WishlistPriority",
    "WishlistStatus",
    "connection_create",
    "connection_delete",
    "connection_list_all",
    "connection_list_for_contact",
    "connections_import",
    "contact_country_add",
    "contact_country_delete",
    "contact_country_list",
    "contact_create",
    "contact_delete",
    "contact_get",
    "contact_get_or_create_self",
    "contact_list",
    "contact_merge",
    "contact_update",
    "country_connections",
    "duplicate_groups",
    "enrich_batch",
    "enrichment_target",
    "favor_create",
    "favor_list",
    "find_duplicate_groups",
    "interaction_list",
    "interaction_log",
    "introduction_create",
    "introduction_list",
    "network_metrics",
    "tag_create",
    "tag_delete",
    "tag_list",
    "tag_rename",
    "trip_create",
    "trip_delete",
    "trip_list",
    "trips_create_bulk",
    "trips_delete_all",
    "visited_add",
    "visited_list",
    "visited_remove",
    "wishlist_list",
    "wishlist_remove",
    "wishlist_upsert",
]
