"""
account.py
----------
Purpose:
    Sign-in bookkeeping, onboarding, profile and account settings.

Usage:
    POST   /account/session     - Record the signed-in user (users upsert + session blob)
    GET    /account/session     - Session user
    DELETE /account/session     - Sign out (clears session and account settings)
    GET    /account/settings    - Account settings (defaults from the token)
    PUT    /account/settings    - Save account settings
    GET    /account/profile     - Onboarding profile
    PUT    /account/profile     - Save onboarding profile
    POST   /account/onboarding  - Complete onboarding
"""

from fastapi import APIRouter, Depends, HTTPException, status

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.api.account_request import OnboardingRequest, ProfileRequest
from hireflow.models.domain.user_domain import AccountSettings, User, UserProfile
from hireflow.repositories.user_repository import UserRepository
from hireflow.routes.dependencies import get_account_settings, get_user_repository

router = APIRouter(prefix="/account", tags=["account"])
logger = get_logger(__name__)


def _user_from_token(user: AuthenticatedUser) -> User:
    return User(
        id=user.id,
        email=user.email,
        name=user.name,
        picture=user.picture,
        verified_email=user.email_verified,
    )


@router.post("/session", response_model=User)
async def sign_in(
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    stored = await users.save_user(_user_from_token(user))
    await users.save_session_user(stored)
    logger.info("User signed in", user_id=user.id, onboarding_completed=stored.onboarding_completed)
    return stored


@router.get("/session", response_model=User)
async def get_session(
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    session_user = await users.get_session_user(user.id)
    if session_user is not None:
        return session_user

    # cached session expired; a stored account restores it
    stored = await users.get_user(user.email)
    if stored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active session")
    await users.save_session_user(stored)
    return stored


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    await users.clear_session(user.id)
    logger.info("User signed out", user_id=user.id)


@router.get("/settings", response_model=AccountSettings)
async def read_settings(account: AccountSettings = Depends(get_account_settings)):
    return account


@router.put("/settings", response_model=AccountSettings)
async def write_settings(
    request: AccountSettings,
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    if not request.full_name.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Full name is required")
    return await users.save_account_settings(user.id, request)


@router.get("/profile", response_model=UserProfile)
async def read_profile(
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    profile = await users.get_profile(user.id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.put("/profile", response_model=UserProfile)
async def write_profile(
    request: ProfileRequest,
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    existing = await users.get_profile(user.id)
    profile = UserProfile(
        user_id=user.id,
        profile_completed=existing.profile_completed if existing else False,
        **request.model_dump(),
    )
    return await users.save_profile(profile)


@router.post("/onboarding", response_model=User)
async def complete_onboarding(
    request: OnboardingRequest,
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
):
    """
    Finish onboarding: store the profile, seed account settings from it and
    set the onboarding flag on the user row.
    """
    stored = await users.save_user(_user_from_token(user))

    profile_fields = request.model_dump(exclude={"completed"})
    await users.save_profile(UserProfile(user_id=user.id, profile_completed=request.completed, **profile_fields))
    await users.save_account_settings(
        user.id,
        AccountSettings(
            full_name=request.full_name,
            email=user.email,
            job_title=request.job_title or "",
            company=request.company or "",
        ),
    )

    if not await users.update_user_onboarding(user.email, request.completed):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to update onboarding status")

    completed_user = stored.model_copy(update={"onboarding_completed": request.completed})
    await users.save_session_user(completed_user)
    logger.info("Onboarding completed", user_id=user.id, completed=request.completed)
    return completed_user
