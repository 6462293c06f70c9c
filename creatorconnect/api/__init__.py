"""
HTTP API blueprints and shared request helpers.
"""
from flask import request

from ..utils.exceptions import ValidationError


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def require_int(data: dict, name: str, required: bool = True):
    """Whole-number field from a JSON body."""
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationError(f'{name} is required', field=name)
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{name} must be a whole number', field=name)
    return value


def get_pagination(default_per_page: int = 50, max_per_page: int = 200):
    page = request.args.get('page', 1, type=int) or 1
    per_page = request.args.get('per_page', default_per_page, type=int) or default_per_page
    return max(1, page), max(1, min(per_page, max_per_page))


def arg_flag(name: str) -> bool:
    return request.args.get(name, 'false').lower() in ('1', 'true', 'yes')
