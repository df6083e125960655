# routers/forms.py - Multipart Form Parsing
# ============================================================================

import json
from typing import Any, Dict, List, Tuple, Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from freightdesk.core.exceptions import InvalidInputError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(value: str) -> Any:
    # Arrays and objects arrive JSON-encoded inside a single form field
    stripped = value.strip()
    if stripped[:1] in ("[", "{"):
        try:
            return json.loads(stripped)
        except ValueError:
            return value
    return value


async def read_body(request: Request, file_field: str) -> Tuple[Dict[str, Any], List[UploadFile]]:
    """Read a JSON or multipart body into (fields, files).

    Repeated form keys become lists and empty fields are dropped. Only files
    sent under `file_field` are returned.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(("multipart/", "application/x-www-form-urlencoded")):
        body = await request.body()
        if not body:
            return {}, []
        try:
            return json.loads(body), []
        except ValueError as e:
            raise InvalidInputError(f"Malformed JSON body: {e}") from e

    form = await request.form()
    data: Dict[str, Any] = {}
    files: List[UploadFile] = []

    for key in dict.fromkeys(form.keys()):
        values = form.getlist(key)
        if key == file_field:
            files.extend(v for v in values if isinstance(v, UploadFile) and v.filename)
            continue
        texts = [_coerce(v) for v in values if isinstance(v, str) and v != ""]
        if not texts:
            continue
        data[key] = texts[0] if len(texts) == 1 else texts

    return data, files


def validate_body(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e
