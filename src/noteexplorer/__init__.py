"""noteexplorer: organize a stack of linked Markdown notes."""

__version__ = "0.6.0"

__all__ = ["__version__"]
