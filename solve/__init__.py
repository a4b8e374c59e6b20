"""Configuration, SQL schema, object and event stores, migrations and helpers for a contest judging service."""

__version__ = "0.1.0"