"""
Admin key authentication routes

Challenge-response login and public key management for the admin account.
Domain failures propagate as KeyAuthError and are rendered by the
application's exception handler as {"error": <kind>, "message": <text>}.
"""
from fastapi import APIRouter, Depends
import logging

from blogauth.api.dependencies import (
    get_actor,
    get_challenge_issuer,
    get_key_registrar,
    get_signature_verifier,
)
from blogauth.api.rate_limiting import POLICY_KEY_MANAGEMENT, POLICY_LOGIN, rate_limited
from blogauth.api.schemas import (
    ChallengeRequest,
    ChallengeResponse,
    MessageResponse,
    RegisterKeyRequest,
    RotateKeyRequest,
    UserView,
    VerifyRequest,
    VerifyResponse,
)
from blogauth.api.session_auth import get_current_admin
from blogauth.core.audit import ActorContext
from blogauth.core.database.models import User
from blogauth.core.keyauth import (
    ChallengeIssuer,
    KeyRegistrar,
    SignatureVerifier,
    user_view,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin-auth"])


@router.post(
    "/register-key",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limited(POLICY_KEY_MANAGEMENT))],
)
def register_key(
    body: RegisterKeyRequest,
    registrar: KeyRegistrar = Depends(get_key_registrar),
    actor: ActorContext = Depends(get_actor),
):
    """
    Register the admin's first public key.

    The key pair is generated on the client; only the public half is sent.
    Registration is one-shot: once a key exists, use /rotate-key.
    """
    registrar.register_initial_key(body.email, body.publicKey, actor=actor)
    return MessageResponse(success=True, message="Public key registered successfully")


@router.post(
    "/rotate-key",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limited(POLICY_KEY_MANAGEMENT))],
)
def rotate_key(
    body: RotateKeyRequest,
    registrar: KeyRegistrar = Depends(get_key_registrar),
    actor: ActorContext = Depends(get_actor),
):
    """Replace the admin's public key. The challenge must be signed with the current key."""
    registrar.rotate_key(
        body.email,
        body.newPublicKey,
        body.signature,
        body.challenge,
        actor=actor,
    )
    return MessageResponse(success=True, message="Key rotated successfully")


@router.post(
    "/challenge",
    response_model=ChallengeResponse,
    dependencies=[Depends(rate_limited(POLICY_LOGIN))],
)
def issue_challenge(
    body: ChallengeRequest,
    issuer: ChallengeIssuer = Depends(get_challenge_issuer),
    actor: ActorContext = Depends(get_actor),
):
    """Issue a login challenge (valid for 5 minutes) to an admin with a registered key."""
    issued = issuer.issue_challenge(body.email, actor=actor)
    return ChallengeResponse(challenge=issued.challenge, userId=issued.user_id)


@router.post(
    "/verify",
    response_model=VerifyResponse,
    dependencies=[Depends(rate_limited(POLICY_LOGIN))],
)
def verify(
    body: VerifyRequest,
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    actor: ActorContext = Depends(get_actor),
):
    """Exchange a signed challenge for a session token."""
    result = verifier.verify(body.challenge, body.signature, body.userId, actor=actor)
    return VerifyResponse(success=True, token=result.token, user=UserView(**result.user))


@router.get("/me", response_model=UserView)
def me(current_admin: User = Depends(get_current_admin)):
    """The admin behind the presented session token."""
    return UserView(**user_view(current_admin))
