from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from backoffice.models.agent import AgentType, PricingTier
from backoffice.models.order import enum_value


class AgentCreate(BaseModel):
    agent_code: str = ""  # empty = generated
    name: str
    type: AgentType = AgentType.AGENT
    pricing_tier: PricingTier = PricingTier.STANDARD
    email: str = ""
    phone: str = ""
    address: str = ""
    is_active: bool = True


class AgentUpdate(BaseModel):
    name: str | None = None
    type: AgentType | None = None
    pricing_tier: PricingTier | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    is_active: bool | None = None


class AgentOut(BaseModel):
    id: int
    agent_code: str
    name: str
    type: str
    pricing_tier: str
    tier_discount_percentage: int
    email: str
    phone: str
    address: str
    is_active: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("type", "pricing_tier", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)


class TierPriceOut(BaseModel):
    agent_id: int
    pricing_tier: str
    discount_percentage: int
    base_price: Decimal
    price: Decimal
