from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CartItemPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    product_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(gt=0)


class CartUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = Field(ge=0)
    items: List[CartItemPayload] = []


class CartResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    version: int
    items: List[CartItemPayload] = []
