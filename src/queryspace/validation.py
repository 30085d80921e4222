"""
Field validation for query record updates.

The limits come from WorkspaceSettings, so the pydantic models are built
per settings instance with `create_model`. Failures are reported as
`FieldInvalid` entries keyed by field name and never reach the backend.
"""
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, StringConstraints, ValidationError, create_model, model_validator

from src.core.config import WorkspaceSettings
from .models import FieldInvalid

NAME_SCHEMA_ID = "queries/update-name"
TEXT_SCHEMA_ID = "queries/update-text"
UPDATE_SCHEMA_ID = "queries/update"


class _RequireOneField(BaseModel):
    @model_validator(mode="after")
    def _check_any(self):
        if getattr(self, "name", None) is None and getattr(self, "query_text", None) is None:
            raise ValueError("At least one of name or query_text must be provided")
        return self


class QueryValidator:
    """
    Validates name and text updates against the configured limits.

    Usage:
        validator = QueryValidator(config.data.workspace)
        invalid = validator.validate_name(query_id, "ab", action_type="queries/updateName")
        if invalid:
            ...
    """

    def __init__(self, settings: WorkspaceSettings):
        self.settings = settings
        name_type = Annotated[str, StringConstraints(min_length=settings.name_min_length,
                                                     max_length=settings.name_max_length)]
        text_type = Annotated[str, StringConstraints(max_length=settings.query_text_max_length)]
        id_type = Annotated[str, StringConstraints(min_length=1)]

        self.UpdateQueryName = create_model("UpdateQueryName", query_id=(id_type, ...), name=(name_type, ...))
        self.UpdateQueryText = create_model("UpdateQueryText", query_id=(id_type, ...), query_text=(text_type, ...))
        self.UpdateQuery = create_model(
            "UpdateQuery",
            __base__=_RequireOneField,
            query_id=(id_type, ...),
            name=(Optional[name_type], None),
            query_text=(Optional[text_type], None),
        )

    def validate_name(self, query_id: str, name: Any, action_type: str) -> Dict[str, FieldInvalid]:
        return self._run(self.UpdateQueryName, NAME_SCHEMA_ID, action_type,
                         query_id=query_id, name=name)

    def validate_text(self, query_id: str, query_text: Any, action_type: str) -> Dict[str, FieldInvalid]:
        return self._run(self.UpdateQueryText, TEXT_SCHEMA_ID, action_type,
                         query_id=query_id, query_text=query_text)

    def validate_update(self, query_id: str, action_type: str, **fields: Any) -> Dict[str, FieldInvalid]:
        return self._run(self.UpdateQuery, UPDATE_SCHEMA_ID, action_type, query_id=query_id, **fields)

    def _run(self, model, schema_id: str, action_type: str, **payload: Any) -> Dict[str, FieldInvalid]:
        try:
            model.model_validate(payload)
        except ValidationError as e:
            return self._to_invalid(e, schema_id, action_type, payload)
        return {}

    def _to_invalid(self, error: ValidationError, schema_id: str, action_type: str,
                    payload: Dict[str, Any]) -> Dict[str, FieldInvalid]:
        invalid: Dict[str, FieldInvalid] = {}
        for item in error.errors():
            loc = item.get("loc") or ()
            fields = [str(loc[0])] if loc else [f for f in ("name", "query_text") if f in payload] or ["name", "query_text"]
            for field in fields:
                if field in invalid:
                    continue
                invalid[field] = FieldInvalid(
                    field=field,
                    action_type=action_type,
                    message=self._message(field, item),
                    schema_id=schema_id,
                )
        return invalid

    def _message(self, field: str, item: Dict[str, Any]) -> str:
        label = "Name" if field == "name" else "Query text" if field == "query_text" else field
        kind = item.get("type")
        ctx = item.get("ctx") or {}
        if kind == "string_too_short":
            return f"{label} must be at least {ctx.get('min_length')} characters"
        if kind == "string_too_long":
            return f"{label} must be at most {ctx.get('max_length')} characters"
        if kind == "string_type":
            return f"{label} must be a string"
        if kind == "missing":
            return f"{label} is required"
        return str(item.get("msg", "Invalid value"))
