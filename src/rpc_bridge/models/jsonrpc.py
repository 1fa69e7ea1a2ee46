from typing import Any, Literal

from pydantic import Field

from .common import BasePydanticModel


class JsonRpcRequest(BasePydanticModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int = Field(..., ge=0, description="Request id, unique per process.")
    method: str = Field(..., min_length=1)
    params: list[Any] = Field(default_factory=list)

class JsonRpcErrorObject(BasePydanticModel):
    code: int | None = None
    message: str | None = None
    data: Any | None = None

    model_config = {
        "extra": "allow", # Nodes sometimes add their own fields
        "populate_by_name": True,
    }

class SubscriptionRecord(BasePydanticModel):
    """A live subscription, keyed in the provider by the id it was first given."""
    id: str = Field(..., description="Current subscription id on the node. Changes on resubscription.")
    subscribe_method: str
    parameters: list[Any] = Field(default_factory=list, description="Subscription name followed by its arguments.")
