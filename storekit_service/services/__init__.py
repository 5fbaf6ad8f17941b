"""Receipt loading, receipt validation and purchase coordination services."""
