"""Core: settings, logging, exceptions, database, application context."""
