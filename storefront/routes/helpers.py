from flask import request

from storefront.errors import ValidationError


def json_body():
    """The request's JSON object, {} when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def text_field(data, name):
    """Stripped string value of `name`, '' when absent."""
    value = data.get(name)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip()
