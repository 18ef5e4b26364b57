from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.database import get_db
from backoffice.models.user import User
from backoffice.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    display_name: str
    role: str
    active: bool = True

    model_config = {"from_attributes": True}


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: extract user from JWT cookie or bearer header."""
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise HTTPException(401, "Not authenticated")
    user = auth_service.resolve_actor(db, token)
    if not user:
        raise HTTPException(401, "Invalid or expired token")
    return user


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = auth_service.create_access_token(user)
    response.set_cookie(
        "token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS
    )
    return {"token": token, "user": UserOut.model_validate(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
