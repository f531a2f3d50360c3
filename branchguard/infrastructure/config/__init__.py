"""Configuration loading (.env, environment, YAML) and run settings."""
