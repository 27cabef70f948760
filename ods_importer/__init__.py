"""ODS spreadsheet -> PostgreSQL row importer."""

__version__ = "0.1.0"
