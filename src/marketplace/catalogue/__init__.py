"""Catalogue adapter factory.

Provides get_catalogue() / set_catalogue() to swap implementations. The
in-memory FakeCatalogue is the default until a product service adapter is
configured.
"""

from marketplace.catalogue.fake_adapter import FakeCatalogue
from marketplace.catalogue.port import CataloguePort

_current_catalogue: CataloguePort | None = None


def get_catalogue() -> CataloguePort:
    """Return the current catalogue adapter. Defaults to FakeCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: CataloguePort) -> None:
    """Override the active catalogue adapter (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    """Reset to default catalogue."""
    global _current_catalogue
    _current_catalogue = None
