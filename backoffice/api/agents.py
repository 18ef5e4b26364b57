from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.agent import AgentType
from backoffice.models.user import User
from backoffice.schemas.agent import AgentCreate, AgentOut, AgentUpdate, TierPriceOut
from backoffice.services import agent_service

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.post("", response_model=AgentOut, status_code=201)
def create_agent(data: AgentCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return agent_service.create_agent(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("", response_model=list[AgentOut])
def list_agents(
    type: AgentType | None = None,
    active_only: bool = False,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return agent_service.list_agents(db, agent_type=type, active_only=active_only, search=search)


@router.get("/{agent_id}", response_model=AgentOut)
def get_agent(agent_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    agent = agent_service.get_agent(db, agent_id)
    if not agent:
        raise HTTPException(404, "Agent not found")
    return agent


@router.patch("/{agent_id}", response_model=AgentOut)
def update_agent(
    agent_id: int, data: AgentUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    agent = agent_service.update_agent(db, agent_id, data)
    if not agent:
        raise HTTPException(404, "Agent not found")
    return agent


@router.get("/{agent_id}/price", response_model=TierPriceOut)
def agent_price(
    agent_id: int,
    base_price: Decimal = Query(..., ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    agent = agent_service.get_agent(db, agent_id)
    if not agent:
        raise HTTPException(404, "Agent not found")
    return agent_service.tier_price(agent, base_price)
