from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class PortOneWebhookRequest(BaseModel):
    payment_id: NonBlank
    status: Literal["Paid", "Cancelled"]


class CustomerRef(BaseModel):
    id: NonBlank


class ChargeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    billing_key: NonBlank = Field(alias="billingKey")
    order_name: NonBlank = Field(alias="orderName")
    amount: int = Field(gt=0)
    customer: CustomerRef
    custom_data: NonBlank = Field(alias="customData")


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_key: NonBlank = Field(alias="transactionKey")
