from typing import Type, TypeVar
from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
import pydantic
import json

from utils.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

class RequestModel(BaseModel):
    """Request bodies use camelCase keys (batchId, storageLocation); snake_case is accepted too"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

async def parse_body(request: Request, model: Type[ModelT]) -> ModelT:
    """
    Read a JSON or form-encoded body into ``model``.

    Scanner devices post JSON while plain HTML forms post
    ``application/x-www-form-urlencoded``; both land in the same schema.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/x-www-form-urlencoded") or content_type.startswith("multipart/form-data"):
            form = await request.form()
            data = {key: value for key, value in form.items() if value != ""}
        else:
            raw = await request.body()
            data = json.loads(raw) if raw else {}
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid request body")

    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")

    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(format_validation_error(e))

def format_validation_error(error) -> str:
    """First error of a pydantic or FastAPI validation failure as one readable line"""
    errors = error.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    if first.get("type") == "missing":
        return f"{location} is required"
    if location:
        return f"{location}: {first.get('msg')}"
    return first.get("msg", "Invalid request")
