"""Service configuration, policies and the HTTP entry point."""
