# /labinsight/utils/validators.py
from labinsight.utils.errors import ValidationError


def string_field(value, field, default='', strip=True):
    """Returns ``value`` (stripped unless told otherwise), or ``default`` when absent.

    Raises:
        ValidationError: ``value`` is present but not a string
    """
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value.strip() if strip else value
