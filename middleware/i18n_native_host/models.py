"""Request/response models exchanged with the browser extension."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class RequestValidationError(ValueError):
    def __init__(self, messages: List[str]):
        self.messages = list(messages) or ["Invalid request"]
        super().__init__("; ".join(self.messages))


def _require_text(value: str) -> str:
    if not value:
        raise ValueError("must not be empty")
    return value


class EditRequest(BaseModel):
    """One edit: ``ns`` is a hint from the page and never selects the file."""

    model_config = ConfigDict(extra="ignore")

    key: str
    old: str
    new: Optional[str] = None
    ns: Optional[str] = None

    @field_validator("key", "old")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value)

    @property
    def wants_write(self) -> bool:
        return bool(self.new)


class UpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    root: str
    lang: str
    force: bool = False
    payload: List[EditRequest]

    @field_validator("root", "lang")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value.strip())

    @field_validator("force", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("payload", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if not value:
            raise ValueError("No payload provided")
        if isinstance(value, dict):
            return [value]
        return value


class TemplateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    root: str
    lang: str
    key: str

    @field_validator("root", "lang", "key")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value.strip())


class UpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    updated_files: List[str] = Field(default_factory=list, alias="updatedFiles")
    errors: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, message: Optional[str] = None) -> "UpdateResponse":
        return cls(success=False, message=message or error, error=error, errors=[error])

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TemplateResponse(BaseModel):
    success: bool
    template: Optional[str] = None
    namespace: Optional[str] = None
    file: Optional[str] = None
    message: str = ""
    error: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        # The extension reads ``template`` even on failure.
        data["template"] = self.template
        return data


def _strip_value_error(msg: str) -> str:
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


def describe_validation_error(exc: ValidationError) -> List[str]:
    """Turn pydantic errors into the messages reported back to the extension."""
    messages: List[str] = []
    for err in exc.errors():
        loc = tuple(err.get("loc") or ())
        msg = _strip_value_error(str(err.get("msg") or "invalid value"))
        if len(loc) >= 2 and loc[0] == "payload" and isinstance(loc[1], int):
            field_name = loc[2] if len(loc) > 2 else None
            if field_name in ("key", "old"):
                text = f"Item {loc[1]}: missing required field (key or old)"
            elif field_name:
                text = f"Item {loc[1]}: invalid field '{field_name}': {msg}"
            else:
                text = f"Item {loc[1]}: {msg}"
        elif loc == ("payload",) and err.get("type") in {"missing", "value_error"}:
            text = "No payload provided"
        elif loc and err.get("type") == "missing":
            text = f"Missing required field: {loc[0]}"
        elif loc:
            text = f"Invalid field '{'.'.join(str(part) for part in loc)}': {msg}"
        else:
            text = msg
        if text not in messages:
            messages.append(text)
    return messages


def parse_update_request(data: Any) -> UpdateRequest:
    if not isinstance(data, dict):
        raise RequestValidationError(["Request must be a JSON object"])
    try:
        return UpdateRequest.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(describe_validation_error(exc)) from exc


def parse_template_request(data: Any) -> TemplateRequest:
    if not isinstance(data, dict):
        raise RequestValidationError(["Request must be a JSON object"])
    try:
        return TemplateRequest.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(describe_validation_error(exc)) from exc
