"""Flask blueprints: thin HTTP adapters over the services."""
