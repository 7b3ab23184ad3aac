"""lanstats - Twitch channel statistics exporter."""

__version__ = "1.0.0"
