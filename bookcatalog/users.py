# bookcatalog/users.py
from fastapi import APIRouter, Depends, Request

from .auth import AuthenticationService
from .models import LoginRequest, RegisterRequest, TokenResponse, User


router = APIRouter(prefix="/api/user", tags=["user"])


def get_auth_service(request: Request) -> AuthenticationService:
    return request.app.state.auth


@router.post("/register", response_model=User, response_model_exclude_none=True)
async def register(req: RegisterRequest, auth: AuthenticationService = Depends(get_auth_service)):
    return await auth.register(req)


@router.post("/login", response_model=TokenResponse, response_model_exclude_none=True)
async def login(req: LoginRequest, auth: AuthenticationService = Depends(get_auth_service)):
    token, user = await auth.login(req.email, req.password)
    return TokenResponse(token=token, user=User.model_validate(user))
