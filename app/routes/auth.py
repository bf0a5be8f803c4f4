import logging

from fastapi import APIRouter, Request

from ..errors import Unauthorized
from ..schemas import Login
from ..security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(data: Login, request: Request):
    account = request.app.state.credentials.verify(data.email, data.password)
    if not account:
        logger.info(f"Failed login for {data.email}")
        raise Unauthorized("Invalid credentials")

    token = create_access_token(account.id, account.email, account.roles)
    return {
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "user": account.public(),
    }
