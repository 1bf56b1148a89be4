"""
Contains ready-made locale tables. Install one with `pvschema.configure_locale`.
"""
from .en import EN

__all__ = ["EN"]
