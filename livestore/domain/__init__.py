"""
Domain package for livestore.

Exports the contact model and the explicit table descriptions used by the
storage engines and the access layer.
"""

from livestore.domain.models import Contact
from livestore.domain.schema import CONTACT_SCHEMA, Column, RecordMapper, TableSchema

__all__ = [
    "Contact",
    "CONTACT_SCHEMA",
    "Column",
    "RecordMapper",
    "TableSchema",
]
