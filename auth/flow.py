"""
auth/flow.py -- Registration, verification, login and token refresh.

AuthFlow orchestrates the identity lifecycle

    Unregistered --register--> Pending --verify--> Active

on top of three collaborators: IdentityStore (persistence), the OTP helpers
in auth/otp.py, and OtpMailer (notification). Every failure is raised as a
core.errors.AppError subclass; the API layer translates those into responses.

Field allow-lists:
  Self-service updates may touch only _PROFILE_FIELDS. Admin updates may also
  change role and status. Nothing else from a request body reaches the store.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from auth.mailer import OtpMailer
from auth.models import STATUS_ACTIVE, STATUS_PENDING, Identity
from auth.otp import generate_otp, verify_otp
from auth.store import IdentityStore
from auth.tokens import (
    InvalidToken,
    burn_password_check,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from core.config import Settings, get_settings
from core.errors import (
    DuplicateIdentity,
    Forbidden,
    IncorrectPassword,
    InvalidOtp,
    InvalidRefreshToken,
    NotFound,
    ValidationError,
)

logger = logging.getLogger("educenter.auth.flow")

REGISTERED_MESSAGE = "Otp sended to your email"
VERIFIED_MESSAGE = "Verified"
NOT_VERIFIED_MESSAGE = "Your account is not verified please verify"

_PROFILE_FIELDS = {"full_name", "phone", "region_id", "year", "image"}
_ADMIN_FIELDS = _PROFILE_FIELDS | {"role", "status", "password"}

# Signature of BackgroundTasks.add_task: schedule(func, *args)
Scheduler = Callable[..., Any]


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt that passed the password check.

    Pending identities get message and no tokens; active ones get both tokens.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    message: Optional[str] = None


class AuthFlow:
    def __init__(self, store: IdentityStore, mailer: OtpMailer, settings: Settings | None = None) -> None:
        self.store = store
        self.mailer = mailer
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        *,
        email: str,
        phone: str,
        password: str,
        full_name: str,
        role: str,
        region_id: Optional[int] = None,
        year: Optional[int] = None,
        image: Optional[str] = None,
        schedule: Optional[Scheduler] = None,
    ) -> str:
        """Create a pending identity and send its OTP.

        The code is handed to the mailer only; the returned acknowledgement
        never contains it. When schedule is given (BackgroundTasks.add_task)
        delivery happens after the response is sent.
        """
        if role not in self.settings.self_registration_roles:
            raise Forbidden(f"Role '{role}' is not allowed for registration")
        identity = self._insert(
            Identity(
                email=email.lower(),
                phone=phone,
                full_name=full_name,
                role=role,
                hashed_password=hash_password(password),
                status=STATUS_PENDING,
                region_id=region_id,
                year=year,
                image=image,
            )
        )
        otp = generate_otp(identity.email)
        logger.debug("Issued OTP for identity %s: %s", identity.id, otp)
        if schedule is not None:
            schedule(self.mailer.send_otp_email, identity.email, identity.full_name, otp)
        else:
            self.mailer.send_otp_email(identity.email, identity.full_name, otp)
        logger.info("New user registered - id=%s", identity.id)
        return REGISTERED_MESSAGE

    def provision(
        self,
        *,
        email: str,
        phone: str,
        password: str,
        full_name: str,
        role: str,
        region_id: Optional[int] = None,
        year: Optional[int] = None,
        image: Optional[str] = None,
    ) -> Identity:
        """Admin path: create an identity that is active immediately, any role."""
        identity = self._insert(
            Identity(
                email=email.lower(),
                phone=phone,
                full_name=full_name,
                role=role,
                hashed_password=hash_password(password),
                status=STATUS_ACTIVE,
                region_id=region_id,
                year=year,
                image=image,
            )
        )
        logger.info("Admin provisioned user - id=%s role=%s", identity.id, role)
        return identity

    def _insert(self, identity: Identity) -> Identity:
        self._ensure_unique(email=identity.email, phone=identity.phone)
        try:
            identity.id = self.store.create_identity(identity)
        except IntegrityError as exc:
            # A concurrent request won the race between the check and the insert.
            raise DuplicateIdentity() from exc
        return identity

    def _ensure_unique(
        self, *, email: Optional[str] = None, phone: Optional[str] = None, exclude_id: Optional[int] = None
    ) -> None:
        # Both checks run independently; a clash on either blocks the write.
        if email is not None:
            found = self.store.get_by_email(email)
            if found is not None and found.id != exclude_id:
                raise DuplicateIdentity()
        if phone is not None:
            found = self.store.get_by_phone(phone)
            if found is not None and found.id != exclude_id:
                raise DuplicateIdentity()

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, email: str, otp: str) -> str:
        """Check the OTP and activate the identity.

        Re-verifying an already active identity with a valid code is an
        explicit no-op that returns the same acknowledgement.
        """
        identity = self.store.get_by_email(email)
        if identity is None:
            raise NotFound("User not found")
        if not verify_otp(identity.email, otp):
            raise InvalidOtp()
        if identity.is_active:
            logger.info("Verify on already active identity %s -- no-op", identity.id)
            return VERIFIED_MESSAGE
        self.store.activate(identity.id)
        logger.info("User verified - id=%s", identity.id)
        return VERIFIED_MESSAGE

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and issue an access/refresh pair for active identities.

        Unknown email answers 400 (the public contract of this endpoint), but
        bcrypt still runs so response time does not reveal which case hit [C1].
        """
        identity = self.store.get_by_email(email)
        if identity is None:
            burn_password_check(password)
            raise NotFound("User not found", status_code=400)
        if not verify_password(password, identity.hashed_password):
            raise IncorrectPassword()
        if not identity.is_active:
            return LoginResult(message=NOT_VERIFIED_MESSAGE)
        self.store.update_last_login(identity.id)
        logger.info("User logged in - id=%s", identity.id)
        return LoginResult(
            access_token=create_access_token(identity),
            refresh_token=create_refresh_token(identity),
        )

    def refresh(self, refresh_token: str) -> str:
        """Mint a new access token from a refresh token.

        The refresh token carries only the identity id; role and status are
        read from the current record so a demotion takes effect on refresh.
        """
        try:
            claims = decode_refresh_token(refresh_token)
        except InvalidToken as exc:
            raise InvalidRefreshToken() from exc
        identity = self.store.get_by_id(claims["id"])
        if identity is None:
            raise InvalidRefreshToken()
        logger.info("User got new access_token - id=%s", identity.id)
        return create_access_token(identity)

    # ------------------------------------------------------------------
    # Identity reads / updates
    # ------------------------------------------------------------------

    def who_am_i(self, identity_id: int) -> Identity:
        identity = self.store.get_by_id(identity_id)
        if identity is None:
            raise NotFound("User not found")
        return identity

    def update_profile(self, identity_id: int, changes: dict) -> Identity:
        """Self-service update restricted to _PROFILE_FIELDS."""
        return self._update(identity_id, changes, _PROFILE_FIELDS)

    def admin_update(self, identity_id: int, changes: dict) -> Identity:
        """Admin update; may also change role, status and password."""
        return self._update(identity_id, changes, _ADMIN_FIELDS)

    def _update(self, identity_id: int, changes: dict, allowed: set[str]) -> Identity:
        target = self.who_am_i(identity_id)
        updates = {k: v for k, v in changes.items() if k in allowed}
        if not updates:
            raise ValidationError("No fields to update")
        if "phone" in updates and updates["phone"] != target.phone:
            self._ensure_unique(phone=updates["phone"], exclude_id=identity_id)
        if "password" in updates:
            updates["hashed_password"] = hash_password(updates.pop("password"))
        try:
            self.store.update_identity(identity_id, **updates)
        except IntegrityError as exc:
            raise DuplicateIdentity() from exc
        return self.who_am_i(identity_id)
