"""Shared schema building blocks."""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from safari_ledger.domain.pricing import to_money

# Stored as fixed-precision decimals, emitted as two-decimal JSON numbers
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(to_money(v)), return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names while accepting both forms."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PageMeta(CamelModel):
    total: int
    page: int
    page_size: int
