"""Identity endpoints: registration, password login and single-use token flows.

POST /v1/auth/token speaks the OAuth2 password grant form so the Swagger
"Authorize" button works; ``username`` carries the email address.

Reset and verification requests always answer 202 whether or not the
email is registered.  The token itself only ever travels by email.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel

from settlement.api.errors import to_http
from settlement.core.errors import InvalidStateError, SettlementError
from settlement.services import token_service
from settlement.services.account_service import account_service
from settlement.services.one_time_tokens import ConsumeResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


# --- Request / Response schemas -------------------------------------------


class RegisterIn(BaseModel):
    email: str
    password: str
    name: str = ""


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    email_verified: bool


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class EmailIn(BaseModel):
    email: str


class PasswordResetConfirmIn(BaseModel):
    email: str
    token: str
    new_password: str


class VerifyEmailConfirmIn(BaseModel):
    email: str
    token: str


def _consumed(result: ConsumeResult) -> dict:
    if result != ConsumeResult.SUCCESS:
        raise to_http(InvalidStateError(f"token is {result}"))
    return {"status": "ok"}


# --- Routes ----------------------------------------------------------------


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn) -> UserOut:
    try:
        user = await account_service.register(
            payload.email, payload.password, payload.name.strip()
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return UserOut(
        id=str(user.id),
        email=user.email,
        name=user.name,
        email_verified=user.email_verified,
    )


@router.post("/token", response_model=TokenOut)
async def issue_token(
    form: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> TokenOut:
    try:
        user = await account_service.authenticate(
            form.username.strip().lower(), form.password
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    if user is None:
        logger.warning("Login failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = token_service.create_access_token(
        sub=str(user.id),
        roles=list(user.roles) or ["user"],
    )
    logger.info("Token issued user=%s", user.id)
    return TokenOut(
        access_token=access_token,
        expires_in=token_service.ACCESS_TOKEN_TTL_MIN * 60,
    )


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(payload: EmailIn) -> dict:
    try:
        await account_service.request_password_reset(payload.email)
    except SettlementError as exc:
        raise to_http(exc) from None
    return {"status": "accepted"}


@router.post("/password-reset/confirm")
async def confirm_password_reset(payload: PasswordResetConfirmIn) -> dict:
    try:
        result = await account_service.confirm_password_reset(
            payload.email, payload.token, payload.new_password
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return _consumed(result)


@router.post("/verify-email", status_code=status.HTTP_202_ACCEPTED)
async def request_email_verification(payload: EmailIn) -> dict:
    try:
        await account_service.request_email_verification(payload.email)
    except SettlementError as exc:
        raise to_http(exc) from None
    return {"status": "accepted"}


@router.post("/verify-email/confirm")
async def confirm_email_verification(payload: VerifyEmailConfirmIn) -> dict:
    try:
        result = await account_service.confirm_email_verification(
            payload.email, payload.token
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return _consumed(result)
