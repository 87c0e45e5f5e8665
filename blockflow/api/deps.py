"""Dependency helpers shared by the API routes."""

from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request

from blockflow.db.models import UserModel
from blockflow.db.repository import Repository


@dataclass
class Identity:
    external_id: str
    email: str = ""
    name: Optional[str] = None


def get_optional_identity(request: Request) -> Optional[Identity]:
    external_id = getattr(request.state, "external_id", None)
    if not external_id:
        return None
    return Identity(
        external_id=external_id,
        email=getattr(request.state, "user_email", "") or "",
        name=getattr(request.state, "user_name", None),
    )


def get_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return identity


async def get_repository(request: Request) -> AsyncIterator[Repository]:
    async_session = request.app.state.async_session
    async with async_session() as session:
        yield Repository(session)


async def get_optional_user(
    identity: Identity = Depends(get_identity),
    repo: Repository = Depends(get_repository),
) -> Optional[UserModel]:
    return await repo.get_user_by_external_id(identity.external_id)


async def get_current_user(user: Optional[UserModel] = Depends(get_optional_user)) -> UserModel:
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_continuations(request: Request):
    scheduler = getattr(request.app.state, "continuations", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Continuation scheduler not initialised.")
    return scheduler


def get_session_repository(request: Request):
    return request.app.state.session_repository
