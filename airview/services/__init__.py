"""Domain services: device registry, ingestion, retention and provider sync."""
