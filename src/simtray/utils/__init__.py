"""Binary I/O helpers."""
