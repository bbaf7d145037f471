"""
Base model for all MongoDB document models in TruckOps.

Provides MongoBaseModel with automatic created_at/updated_at timestamps,
identifier and clock helpers, and the parse-and-validate entry point used
whenever a document is read back from the store.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Self
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError, field_validator

from truckops.core.exceptions import ValidationException

logger = logging.getLogger(__name__)

DEFAULT_TENANT = "default"


def generate_uuid() -> str:
    """Generate a new UUID v4 string for use as an application-level identifier."""
    return str(uuid4())


def utc_now() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MongoBaseModel(BaseModel):
    """
    Base model for all MongoDB documents.

    Provides:
    - Automatic created_at and updated_at timestamps (UTC).
    - ``from_document`` to validate raw documents at the store boundary.
    - ``to_document`` to produce the dict that is written back.
    """

    model_config = {
        "populate_by_name": True,
        "arbitrary_types_allowed": True,
        "ser_json_timedelta": "iso8601",
        "from_attributes": True,
        "use_enum_values": True,
        "json_schema_extra": {
            "description": "TruckOps MongoDB document base model."
        },
    }

    created_at: datetime = Field(
        default_factory=utc_now,
        description="Document creation timestamp (UTC).",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last modification timestamp (UTC).",
    )

    @field_validator("created_at", "updated_at")
    @classmethod
    def _audit_times_are_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> Self:
        """Validate a raw MongoDB document into a typed model.

        Raises:
            ValidationException: If *doc* is missing or does not match
                the model's shape.
        """
        if doc is None:
            raise ValidationException(f"Empty {cls.__name__} document")
        data = {k: v for k, v in doc.items() if k != "_id"}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValidationException(
                f"Malformed {cls.__name__} document",
                errors=[
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in exc.errors()
                ],
            ) from exc

    @classmethod
    def parse_many(cls, docs: list[dict[str, Any]]) -> list[Self]:
        """Validate a list of documents, skipping (and logging) malformed ones."""
        parsed: list[Self] = []
        for doc in docs:
            try:
                parsed.append(cls.from_document(doc))
            except ValidationException as exc:
                logger.warning(
                    "Skipping malformed %s document: %s",
                    cls.__name__,
                    exc.detail.get("errors", exc.message),
                )
        return parsed

    def to_document(self) -> dict[str, Any]:
        """Return the dict representation written to MongoDB."""
        return self.model_dump(mode="python")
