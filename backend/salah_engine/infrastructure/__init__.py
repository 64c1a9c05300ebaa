"""Infrastructure Layer — remote provider client, timezone lookup, logging setup."""
