"""Persistence plumbing: declarative base, column types, engine and guards."""
