"""Infrastructure layer: configuration, logging, database, redis and events."""
