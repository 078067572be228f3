import uuid

from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import NotFoundError


def get_or_not_found(queryset, pk, label):
    """Like get_object_or_404, but raises the engine's NotFoundError."""
    try:
        obj = queryset.filter(pk=pk).first()
    except (ValueError, TypeError, DjangoValidationError):
        # Malformed UUIDs never match a row
        obj = None
    if obj is None:
        raise NotFoundError(f'{label} {pk} does not exist')
    return obj


def as_uuid(value):
    """Coerce an id to UUID; anything unparseable becomes None."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None
