"""DynaSchema CLI."""
