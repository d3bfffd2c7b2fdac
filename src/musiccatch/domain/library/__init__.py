"""Library domain - catalog of tracks and playlists.

This domain handles:
- Track and playlist models
- Catalog loading (JSON files or built-in sample data)
- Search, trending and recommendations
- Playlist management
"""

# Models
from .models import Playlist, Track

# Catalog
from .catalog import (
    Catalog,
    CatalogError,
    catalog_from_dict,
    load_catalog,
    sample_catalog,
)

__all__ = [
    # Models
    "Playlist",
    "Track",
    # Catalog
    "Catalog",
    "CatalogError",
    "catalog_from_dict",
    "load_catalog",
    "sample_catalog",
]
