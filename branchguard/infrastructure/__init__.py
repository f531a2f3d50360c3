"""Infrastructure Layer: adapters for GitHub, configuration, logging, reporting and the console."""
