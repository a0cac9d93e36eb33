from flask import request


def request_data() -> dict:
    """Acepta JSON o x-www-form-urlencoded."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return {k: v for k, v in (request.form or {}).items()}
