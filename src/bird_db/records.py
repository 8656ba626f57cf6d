"""
Field vocabulary of a bird record.

Records are plain dicts; no field is guaranteed to be present, and an empty
string or null is treated the same as an absent field.
"""

from typing import Any

Record = dict[str, Any]

SCIENTIFIC_NAME = "Scientific_name"
ENGLISH_NAME_AVILIST = "English_name_AviList"
ENGLISH_NAME_CLEMENTS = "English_name_Clements_v2024"
ENGLISH_NAME_BIRDLIFE = "English_name_BirdLife_v9"

ORDER = "Order"
FAMILY = "Family"
TAXON_RANK = "Taxon_rank"
IUCN_CATEGORY = "IUCN_Red_List_Category"
RANGE = "Range"
AUTHORITY = "Authority"
EXTINCT = "Extinct_or_possibly_extinct"
SEQUENCE = "Sequence"

BIRDLIFE_URL = "BirdLife_DataZone_URL"
BIRDS_OF_THE_WORLD_URL = "Birds_of_the_World_URL"
ORIGINAL_DESCRIPTION_URL = "Original_description_URL"

# Searched together by name lookups
NAME_FIELDS = (
    SCIENTIFIC_NAME,
    ENGLISH_NAME_AVILIST,
    ENGLISH_NAME_CLEMENTS,
    ENGLISH_NAME_BIRDLIFE,
)

TAXONOMY_LEVELS = (TAXON_RANK, ORDER, FAMILY)

SPECIES_RANK = "species"
NOT_ASSESSED = "Not assessed"


def has_value(value: Any) -> bool:
    """Return True unless the value is absent, null or an empty string."""
    return value is not None and value != ""
