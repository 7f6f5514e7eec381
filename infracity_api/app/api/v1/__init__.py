"""Version 1 of the InfraCity REST API."""
