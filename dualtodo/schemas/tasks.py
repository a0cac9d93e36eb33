from dualtodo.errors import ValidationError


def validate_title(data) -> str:
    title = data.get("title") if data else None
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")
    return title.strip()
