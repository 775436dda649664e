"""chatexport: turn captured AI chat pages into portable documents."""

__version__ = "0.3.0"
