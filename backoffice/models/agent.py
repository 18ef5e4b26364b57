from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base


class AgentType(str, PyEnum):
    AGENT = "agent"
    COMPANY = "company"
    BOOKSTORE = "bookstore"


class PricingTier(str, PyEnum):
    STANDARD = "standard"
    PREMIUM = "premium"
    VIP = "vip"


# Discount percentage off the base price per pricing tier
TIER_DISCOUNTS = {
    PricingTier.STANDARD: 10,
    PricingTier.PREMIUM: 15,
    PricingTier.VIP: 20,
}


class Agent(Base):
    """Wholesale / reseller account that agent orders are placed for."""

    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_code: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(
        Enum(AgentType, values_callable=lambda x: [e.value for e in x]),
        default=AgentType.AGENT,
    )
    pricing_tier: Mapped[str] = mapped_column(
        Enum(PricingTier, values_callable=lambda x: [e.value for e in x]),
        default=PricingTier.STANDARD,
    )
    email: Mapped[str] = mapped_column(String, default="")
    phone: Mapped[str] = mapped_column(String, default="")
    address: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def tier_discount_percentage(self) -> int:
        tier = PricingTier(self.pricing_tier) if self.pricing_tier else PricingTier.STANDARD
        return TIER_DISCOUNTS[tier]

    def tier_price(self, base_price: Decimal) -> Decimal:
        return base_price * (Decimal(100) - self.tier_discount_percentage) / Decimal(100)
