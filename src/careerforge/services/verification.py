"""Email verification via signed links.

Every failure, whatever its cause, produces the same client-visible
response so that a caller cannot probe whether an account exists or has
already been verified. The distinguishing detail goes to the server log
only, tagged per failure kind.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from careerforge.models import User
from careerforge.services.auth import VERIFY_EMAIL_PURPOSE, TokenInvalid, decode_token
from careerforge.services.users import conditional_verify

logger = logging.getLogger(__name__)

VERIFICATION_SUCCESS_MESSAGE = "User verified successfully."
VERIFICATION_FAILURE_MESSAGE = "Verification link is invalid or expired."

VERIFICATION_SUCCESS_STATUS = 200
VERIFICATION_FAILURE_STATUS = 401


class VerificationErrorKind(str, Enum):
    """Internal failure taxonomy; never exposed to the caller."""

    TOKEN_INVALID = "TokenInvalid"
    NOT_FOUND_OR_ALREADY_VERIFIED = "NotFoundOrAlreadyVerified"
    STORE_FAULT = "StoreFault"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification attempt: either a user or an error kind."""

    user: User | None = None
    error: VerificationErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_response(result: VerificationResult) -> tuple[int, dict[str, Any]]:
    """Map any verification result to (status_code, body).

    All error kinds share one status and one body.
    """
    if result.ok:
        return VERIFICATION_SUCCESS_STATUS, {
            "success": True,
            "message": VERIFICATION_SUCCESS_MESSAGE,
        }
    return VERIFICATION_FAILURE_STATUS, {
        "success": False,
        "message": VERIFICATION_FAILURE_MESSAGE,
    }


async def verify_user(
    session: AsyncSession,
    verification_token: str,
    client_ip: str | None = None,
) -> VerificationResult:
    """Validate a verification token and mark its user verified.

    Performs at most one state mutation: the atomic conditional update in
    ``conditional_verify``. Replaying a token after success yields
    NOT_FOUND_OR_ALREADY_VERIFIED. Nothing is retried; a store fault rolls
    back and leaves the token usable until it expires.
    """
    ip = client_ip or "unknown"
    user_id: str | None = None

    try:
        try:
            payload = decode_token(verification_token, purpose=VERIFY_EMAIL_PURPOSE)
        except TokenInvalid as e:
            logger.warning(f"[MailVerification][TokenInvalid] Invalid/expired token, IP: {ip}")
            logger.debug(f"[MailVerification][TokenInvalid] Reason: {e}")
            return VerificationResult(error=VerificationErrorKind.TOKEN_INVALID)

        user_id = payload["sub"]
        user = await conditional_verify(session, user_id)

        if user is None:
            logger.warning(
                f"[MailVerification][NotFoundOrAlreadyVerified] userId: {user_id}, IP: {ip}"
            )
            return VerificationResult(error=VerificationErrorKind.NOT_FOUND_OR_ALREADY_VERIFIED)

        await session.commit()
    except Exception as e:
        logger.error(
            f"[MailVerification][Error] userId: {user_id or 'unknown'}, IP: {ip}, Reason: {e!r}",
            exc_info=True,
        )
        await _safe_rollback(session)
        return VerificationResult(error=VerificationErrorKind.STORE_FAULT)

    logger.info(f"[MailVerification][Success] User verified: {user_id}, IP: {ip}")
    return VerificationResult(user=user)


async def _safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except Exception as e:
        logger.error(f"[MailVerification][Error] Rollback failed: {e!r}")
