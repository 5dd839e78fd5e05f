"""Pydantic models for the partner platform response envelopes.

Only the envelope is modelled strictly. Record payloads stay raw mappings and
go through the declarative field tables in ``payoutsync.domain.normalization``
because their field names drift between API versions.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, cast

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

type RawItems = list[dict[str, Any]]


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class PartnerBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiEnvelope(PartnerBaseModel):
    code: int | None = None
    message: str | None = Field(default=None, validation_alias=AliasChoices("message", "msg"))
    request_id: str | None = None
    data: dict[str, Any] | None = None

    _normalize_message = field_validator("message", mode="before")(_blank_to_none)

    @field_validator("code", mode="before")
    @classmethod
    def _parse_code(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
        return value

    @property
    def ok(self) -> bool:
        return self.code in (None, 0)


class ListPage(PartnerBaseModel):
    """A page of raw records found under whichever list key the endpoint uses."""

    list_keys: ClassVar[tuple[str, ...]] = ()

    items: RawItems = Field(default_factory=list)
    total_count: int | None = Field(
        default=None, validation_alias=AliasChoices("total_count", "total")
    )
    next_page_token: str | None = Field(
        default=None, validation_alias=AliasChoices("next_page_token", "next_cursor")
    )

    _normalize_token = field_validator("next_page_token", mode="before")(_blank_to_none)

    @model_validator(mode="before")
    @classmethod
    def _collect_items(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        data: dict[str, object] = dict(cast(Mapping[str, object], value))
        for key in cls.list_keys:
            candidate = data.get(key)
            if isinstance(candidate, list) and candidate:
                data["items"] = [item for item in candidate if isinstance(item, Mapping)]
                break
        else:
            data.setdefault("items", [])
        return data


class StatementsPage(ListPage):
    list_keys = ("statements", "statement_list")


class PaymentsPage(ListPage):
    list_keys = (
        "payments",
        "payment_list",
        "payouts",
        "payout_list",
        "withdrawals",
        "withdrawal_list",
    )


class SettlementsPage(ListPage):
    list_keys = ("settlement_list", "settlements")


class PayoutSearchPage(ListPage):
    list_keys = ("payout_info",)
