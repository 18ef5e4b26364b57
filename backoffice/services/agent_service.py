import uuid

from sqlalchemy.orm import Session

from backoffice.models.agent import Agent, AgentType
from backoffice.models.order import enum_value
from backoffice.schemas.agent import AgentCreate, AgentUpdate
from backoffice.services.totals import money, to_decimal

CODE_PREFIXES = {
    AgentType.AGENT: "AG",
    AgentType.COMPANY: "CO",
    AgentType.BOOKSTORE: "BS",
}


def _generate_agent_code(db: Session, agent_type: AgentType) -> str:
    while True:
        code = f"{CODE_PREFIXES[agent_type]}-{uuid.uuid4().hex[:6].upper()}"
        if not get_agent_by_code(db, code):
            return code


def create_agent(db: Session, data: AgentCreate) -> Agent:
    code = data.agent_code or _generate_agent_code(db, data.type)
    if get_agent_by_code(db, code):
        raise ValueError(f"Agent code '{code}' already exists")
    agent = Agent(**data.model_dump(exclude={"agent_code"}), agent_code=code)
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


def get_agent(db: Session, agent_id: int) -> Agent | None:
    return db.query(Agent).filter(Agent.id == agent_id).first()


def get_agent_by_code(db: Session, agent_code: str) -> Agent | None:
    return db.query(Agent).filter(Agent.agent_code == agent_code).first()


def list_agents(
    db: Session,
    agent_type: AgentType | None = None,
    active_only: bool = False,
    search: str | None = None,
) -> list[Agent]:
    q = db.query(Agent)
    if agent_type:
        q = q.filter(Agent.type == agent_type)
    if active_only:
        q = q.filter(Agent.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter((Agent.name.ilike(like)) | (Agent.agent_code.ilike(like)))
    return q.order_by(Agent.name).all()


def update_agent(db: Session, agent_id: int, data: AgentUpdate) -> Agent | None:
    agent = get_agent(db, agent_id)
    if not agent:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(agent, field, value)
    db.commit()
    db.refresh(agent)
    return agent


def tier_price(agent: Agent, base_price) -> dict:
    base = to_decimal(base_price)
    return {
        "agent_id": agent.id,
        "pricing_tier": enum_value(agent.pricing_tier),
        "discount_percentage": agent.tier_discount_percentage,
        "base_price": money(base),
        "price": money(agent.tier_price(base)),
    }
