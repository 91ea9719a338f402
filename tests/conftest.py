from __future__ import annotations

import pytest

from src.data.catalog import parse_catalog
from src.data.models import Catalog

CATALOG_TEXT = "\n".join(
    [
        "id;name;municipality;country;code;coordinates;active",
        "1;Gare Cornavin;Genève;CH;CVIN;46.2102,6.1424;Y",
        "2;Bel-Air;Genève;CH;BAIR;46.2044,6.1425;Y",
        "3;Plainpalais;Genève;CH;PLPA;46.1984,6.1415;Y",
        "4;Vieux Dépôt;Carouge;CH;VDEP;46.1800,6.1400;N",
        "5;Bachet-de-Pesay;Lancy;CH;BACH;not-a-coordinate;Y",
        "6;short;row",
        "",
    ]
)


@pytest.fixture()
def catalog_text() -> str:
    return CATALOG_TEXT


@pytest.fixture()
def catalog() -> Catalog:
    return parse_catalog(CATALOG_TEXT, fetched_at=1_700_000_000.0)
