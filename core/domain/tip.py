from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from core.domain.errors import InvalidInputError

DEFAULT_HORIZON = "Long Term"

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)

_TARGET_ACTIONS = {"buy", "sell"}
_EXIT_ACTIONS = {"sell", "partial sell", "partial profit"}


class TipCategory(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    SOCIAL_MEDIA = "social_media"


class TipStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


class TipContent(BaseModel):
    key: str
    value: str


class TipLink(BaseModel):
    name: str
    url: str


def _is_valid_url(value: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def _coerce_content(value: Any) -> Any:
    if isinstance(value, str):
        return [{"key": "main", "value": value}]
    return value


def _coerce_status(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().capitalize()
    return value


class TipFields(BaseModel):
    """Fields shared by tip payloads and stored tips."""

    title: str
    stock_id: str
    category: TipCategory = TipCategory.BASIC
    content: list[TipContent] = Field(default_factory=list)
    description: str
    status: TipStatus = TipStatus.ACTIVE
    action: str | None = None
    buy_range: str | None = None
    target_price: str | None = None
    target_percentage: str | None = None
    add_more_at: str | None = None
    tip_url: str | None = None
    exit_price: str | None = None
    exit_status: str | None = None
    exit_status_percentage: str | None = None
    horizon: str = DEFAULT_HORIZON
    download_links: list[TipLink] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("content", mode="before")
    @classmethod
    def _content_from_text(cls, value: Any) -> Any:
        return _coerce_content(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return _coerce_status(value)

    @field_validator("horizon", mode="before")
    @classmethod
    def _normalize_horizon(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_HORIZON
        if isinstance(value, str):
            return value.strip() or DEFAULT_HORIZON
        return value

    @field_validator("download_links", mode="before")
    @classmethod
    def _drop_blank_links(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for item in value:
            if isinstance(item, dict) and not str(item.get("name") or "").strip() and not str(item.get("url") or "").strip():
                continue
            kept.append(item)
        return kept


_CLEARABLE_TIP_FIELDS = frozenset(
    name for name, field in TipFields.model_fields.items() if not field.is_required() and field.default is None
)


class TipCreate(TipFields):
    portfolio_id: str | None = None


class TipUpdate(BaseModel):
    title: str | None = None
    stock_id: str | None = None
    category: TipCategory | None = None
    content: list[TipContent] | None = None
    description: str | None = None
    status: TipStatus | None = None
    action: str | None = None
    buy_range: str | None = None
    target_price: str | None = None
    target_percentage: str | None = None
    add_more_at: str | None = None
    tip_url: str | None = None
    exit_price: str | None = None
    exit_status: str | None = None
    exit_status_percentage: str | None = None
    horizon: str | None = None
    download_links: list[TipLink] | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("content", mode="before")
    @classmethod
    def _content_from_text(cls, value: Any) -> Any:
        return _coerce_content(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return _coerce_status(value)

    @field_validator("horizon", mode="before")
    @classmethod
    def _normalize_horizon(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class Tip(TipFields):
    id: str = Field(default_factory=lambda: str(uuid4()))
    portfolio_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def apply_update(self, update: TipUpdate) -> Tip:
        """Merge a partial update. ``None`` clears optional fields and is ignored for the rest."""
        changes = {
            key: value
            for key, value in update.model_dump(exclude_unset=True).items()
            if value is not None or key in _CLEARABLE_TIP_FIELDS
        }
        merged = self.model_dump()
        merged.update(changes)
        merged["updated_at"] = datetime.now(UTC)
        return Tip.model_validate(merged)


def tip_errors(tip: TipFields) -> list[str]:
    """Business-rule problems that the field schema alone does not catch."""
    errors: list[str] = []

    if not tip.title.strip():
        errors.append("Title is required")
    if not tip.stock_id.strip():
        errors.append("Stock selection is required")

    if not tip.content:
        errors.append("At least one content item is required")
    for position, item in enumerate(tip.content, start=1):
        if not item.key.strip():
            errors.append(f"Content item {position}: Key is required")
        if not item.value.strip():
            errors.append(f"Content item {position}: Value is required")

    if not tip.description.strip():
        errors.append("Description is required")

    if tip.tip_url and tip.tip_url.strip() and not _is_valid_url(tip.tip_url.strip()):
        errors.append("Tip URL must be a valid URL")

    for position, link in enumerate(tip.download_links, start=1):
        if not link.name.strip():
            errors.append(f"Download link {position}: Name is required")
        if not link.url.strip():
            errors.append(f"Download link {position}: URL is required")
        elif not _is_valid_url(link.url.strip()):
            errors.append(f"Download link {position}: URL must be valid")

    action = (tip.action or "").strip().lower()
    if action in _TARGET_ACTIONS and not (tip.target_price or tip.target_percentage):
        errors.append("Target price or target percentage is required for buy/sell actions")
    if action in _EXIT_ACTIONS and not (tip.exit_price or tip.exit_status):
        errors.append("Exit price or exit status is required for sell actions")

    return errors


def validate_tip(tip: TipFields) -> None:
    errors = tip_errors(tip)
    if errors:
        raise InvalidInputError("; ".join(errors), field="tip")


__all__ = [
    "DEFAULT_HORIZON",
    "Tip",
    "TipCategory",
    "TipContent",
    "TipCreate",
    "TipFields",
    "TipLink",
    "TipStatus",
    "TipUpdate",
    "tip_errors",
    "validate_tip",
]
