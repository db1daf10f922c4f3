# connectchain_admin/api/request_parsing.py
import json
from typing import Dict, List, Optional

from flask import request

from connectchain_admin.exceptions import ValidationError
from connectchain_admin.media import MediaUpload

IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'webp')
MAX_FILE_SIZE = 5 * 1024 * 1024

# Multipart forms can only carry strings, so nested values arrive as JSON text
JSON_ENCODED_FIELDS = ('Attributes', 'Variants', 'imagesToDelete', 'items')


def get_payload() -> Dict:
    """Read the request body as a dict from JSON or form data."""
    if request.is_json:
        payload = request.get_json(silent=True)
        if payload is None:
            if request.get_data():
                raise ValidationError("Request body must be valid JSON")
            return {}
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return payload

    payload = request.form.to_dict()
    for key in JSON_ENCODED_FIELDS:
        value = payload.get(key)
        if isinstance(value, str):
            if not value.strip():
                payload.pop(key)
                continue
            try:
                payload[key] = json.loads(value)
            except ValueError:
                if key == 'imagesToDelete':
                    # A single URL may be sent as plain text
                    payload[key] = [value]
                else:
                    raise ValidationError(f"{key} must be valid JSON")
    return payload


def _to_upload(storage) -> MediaUpload:
    filename = storage.filename or ''
    extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if extension not in IMAGE_EXTENSIONS:
        raise ValidationError(f"Invalid file format! Allowed formats: {', '.join(IMAGE_EXTENSIONS)}")

    data = storage.read()
    if len(data) > MAX_FILE_SIZE:
        raise ValidationError("File size too large. Maximum file size is 5MB per file.")
    return MediaUpload(filename=filename, data=data, content_type=storage.mimetype)


def get_uploads(field: str = 'images') -> List[MediaUpload]:
    return [_to_upload(storage) for storage in request.files.getlist(field) if storage.filename]


def get_upload(field: str = 'image') -> Optional[MediaUpload]:
    uploads = get_uploads(field)
    if len(uploads) > 1:
        raise ValidationError(f"Only one file is allowed in '{field}'")
    return uploads[0] if uploads else None
