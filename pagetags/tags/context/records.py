"""
Record adapters.

Records are host objects templates can read fields from with `record.field`
but never modify. Any class can become a record by implementing
`FieldAccess.template_field`; the adapters here cover the common cases.
"""

from dataclasses import fields, is_dataclass
from typing import Any, Iterable, Optional, Tuple

from sqlalchemy import inspect

from pagetags.tags.values import FieldAccess, to_value


class RecordFields(FieldAccess):
    """
    Mixin exposing the fields of a dataclass to templates.

    Private fields (leading underscore) are hidden. Set `template_fields` to
    restrict the exposed names further.

    Example:
        @dataclass
        class Invoice(RecordFields):
            number: int
            total: float
    """

    template_fields: Optional[Tuple[str, ...]] = None

    def template_field(self, name: str) -> Any:
        if name.startswith('_') or not is_dataclass(self):
            raise KeyError(name)

        if self.template_fields is not None:
            allowed = self.template_fields
        else:
            allowed = [field.name for field in fields(self)]

        if name not in allowed:
            raise KeyError(name)

        return to_value(getattr(self, name))


class ModelRecord(FieldAccess):
    """
    Read-only view of a SQLAlchemy model instance.

    Only mapped column attributes are visible by default, so rendering
    never triggers a lazy relationship load. Relationships listed in
    `include` are exposed too; related instances are wrapped in
    ModelRecord and collections become lists of them.

    Usage:
        context = {'document': ModelRecord(document, include=('generator',))}
    """

    def __init__(self, instance: Any, include: Iterable[str] = ()):
        self._instance = instance
        mapper = inspect(instance).mapper
        self._columns = frozenset(attr.key for attr in mapper.column_attrs)
        self._relationships = frozenset(
            name for name in include if name in mapper.relationships
        )

    def template_field(self, name: str) -> Any:
        if name in self._columns:
            return to_value(getattr(self._instance, name))

        if name in self._relationships:
            return self._wrap(getattr(self._instance, name))

        raise KeyError(name)

    def _wrap(self, value: Any) -> Any:
        """Wrap related model instances; anything else is converted as is."""
        if value is None:
            return None

        if inspect(value, raiseerr=False) is not None:
            return ModelRecord(value)

        if isinstance(value, (list, tuple, set)):
            return tuple(self._wrap(item) for item in value)

        return to_value(value)

    def __repr__(self):
        return f"<ModelRecord {type(self._instance).__name__}>"
