"""CRM spreadsheet import pipeline: customers, leads and sales from CSV/XLSX."""

__version__ = "0.1.0"
