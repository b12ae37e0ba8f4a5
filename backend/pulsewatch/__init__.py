"""PulseWatch - HTTP uptime monitoring core."""
