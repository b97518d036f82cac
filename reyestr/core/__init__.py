"""reyestr core: models, configuration, storage and the ingestion pipeline."""
