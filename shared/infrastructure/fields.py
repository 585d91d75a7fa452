"""
Custom Django model fields and model mixins.

- EncryptedCharField: transparently encrypts guest identity documents.
- DerivedFieldsMixin: columns owned by the ledger aggregator that a plain
  ``save()`` must never overwrite.
- TrackedFieldsMixin: remembers column values as loaded from the database
  so signal receivers can tell which aggregates a write affected.
"""

import logging
from typing import Dict, Tuple

from cryptography.fernet import InvalidToken
from django.db import models

from .encryption import decrypt_string, encrypt_string

logger = logging.getLogger(__name__)


class EncryptedCharField(models.TextField):
    """
    CharField that automatically encrypts data before saving
    and decrypts when loading.

    Stores encrypted data as text in database.
    """

    description = "Encrypted text field"

    def __init__(self, *args, **kwargs):
        # max_length only validates the plaintext, storage is unbounded
        self.max_length_validation = kwargs.pop('max_length', None)
        super().__init__(*args, **kwargs)
        if self.max_length_validation is not None:
            from django.core.validators import MaxLengthValidator

            self.validators.append(MaxLengthValidator(self.max_length_validation))

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.max_length_validation is not None:
            kwargs['max_length'] = self.max_length_validation
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None or value == '':
            return value
        try:
            return decrypt_string(value)
        except InvalidToken:
            logger.warning(f"Could not decrypt value of {self.model.__name__}.{self.name}")
            return ''

    def get_prep_value(self, value):
        if value is None or value == '':
            return ''
        return encrypt_string(str(value))

    def to_python(self, value):
        if value is None:
            return value
        return str(value)


class DerivedFieldsMixin:
    """
    Keep ``derived_fields`` out of ordinary writes.

    New rows start from the field defaults and updates skip the derived
    columns, so only the aggregator's queryset ``update()`` changes them.
    """

    derived_fields: Tuple[str, ...] = ()

    def save(self, *args, **kwargs):
        if self._state.adding:
            for name in self.derived_fields:
                setattr(self, name, self._meta.get_field(name).get_default())
        else:
            update_fields = kwargs.get('update_fields')
            if update_fields is None:
                update_fields = [
                    field.name
                    for field in self._meta.concrete_fields
                    if not field.primary_key and field.name not in self.derived_fields
                ]
            else:
                update_fields = [name for name in update_fields if name not in self.derived_fields]
            kwargs['update_fields'] = update_fields
        super().save(*args, **kwargs)


class TrackedFieldsMixin:
    """Remember ``tracked_fields`` as they were loaded from the database"""

    tracked_fields: Tuple[str, ...] = ()

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = {
            name: getattr(instance, name)
            for name in cls.tracked_fields
            if name in field_names
        }
        return instance

    def get_loaded_values(self) -> Dict[str, object]:
        return getattr(self, '_loaded_values', {})

    def remember_tracked_values(self) -> None:
        self._loaded_values = {name: getattr(self, name) for name in self.tracked_fields}
