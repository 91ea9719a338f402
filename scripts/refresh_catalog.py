"""Discard the cached stop catalog and download a fresh copy."""

from __future__ import annotations

import argparse

from loguru import logger

from src.config import load_config
from src.data.catalog import CatalogCache, CatalogUnavailable
from src.data.transport_client import TransportClient
from src.logging_setup import setup_logging


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config")
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.log)

    client = TransportClient(
        catalog_url=config.transport.catalog_url,
        timeout_seconds=config.transport.timeout_seconds,
    )
    cache = CatalogCache(client, config.catalog.cache_path, retention_days=config.catalog.retention_days)
    try:
        catalog = cache.force_refresh()
    except CatalogUnavailable as exc:
        logger.error("Catalog refresh failed: {}", exc)
        return 1

    active = len(catalog.active_entries())
    print("catalog_refreshed", {"entries": len(catalog.entries), "active": active, "path": str(cache.path)})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
