"""ABOUTME: Self-hosted auth provider backed by the application database
ABOUTME: Password accounts, bearer sessions kept in local storage, and TOTP factors with single-use challenges"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from werkzeug.security import check_password_hash, generate_password_hash

from subdash.adapters import orm, totp
from subdash.adapters.storage import KeyValueStorage
from subdash.config import ProviderCfg
from subdash.domain.auth_results import AuthSession
from subdash.domain.mfa import EnrollmentTicket, MfaChallenge, MfaFactor
from subdash.domain.value_objects import FactorStatus, validate_email
from subdash.service_layer.auth_provider import (
    CHALLENGE_EXPIRED,
    CHALLENGE_NOT_FOUND,
    FACTOR_NOT_FOUND,
    INVALID_CREDENTIALS,
    NOT_AUTHENTICATED,
    USER_ALREADY_EXISTS,
    VERIFICATION_FAILED,
    AbstractAuthProvider,
    AuthProviderError,
)

SESSION_TOKEN_KEY = "auth_session_token"
MIN_PASSWORD_LENGTH = 6


def _parse_id(value: str, not_found_code: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError as error:
        raise AuthProviderError("Not found", code=not_found_code) from error


def _to_factor(row: Any) -> MfaFactor:
    return MfaFactor(
        factor_id=str(row.id),
        status=row.status,
        friendly_name=row.friendly_name,
        factor_type=row.factor_type,
        created_at=row.created_at,
    )


class LocalAuthProvider(AbstractAuthProvider):
    """Auth provider that keeps accounts, sessions and factors in our own tables.

    The current session is whichever access token is held in the client's local
    storage, so a command line client stays signed in between invocations.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: KeyValueStorage,
        cfg: ProviderCfg | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.storage = storage
        self.cfg = cfg or ProviderCfg.from_env()
        self._clock = clock or (lambda: datetime.now(UTC))

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as error:
            raise AuthProviderError("Authentication service unavailable", code="service_unavailable") from error

    async def sign_up(self, email: str, password: str) -> None:
        try:
            validate_email(email)
        except ValueError as error:
            raise AuthProviderError(str(error), code="invalid_email") from error
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthProviderError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters", code="weak_password"
            )

        email = email.strip().lower()
        async with self._db() as db:
            existing = await db.execute(select(orm.users.c.id).where(orm.users.c.email == email))
            if existing.first() is not None:
                raise AuthProviderError("User already registered", code=USER_ALREADY_EXISTS)
            await db.execute(
                insert(orm.users).values(
                    id=uuid.uuid4(),
                    email=email,
                    password_hash=generate_password_hash(password),
                    created_at=self._clock(),
                )
            )
            await db.commit()

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        async with self._db() as db:
            result = await db.execute(select(orm.users).where(orm.users.c.email == email))
            user = result.first()
            if user is None or not check_password_hash(user.password_hash, password):
                raise AuthProviderError("Invalid login credentials", code=INVALID_CREDENTIALS)

            now = self._clock()
            access_token = secrets.token_urlsafe(48)
            expires_at = now + timedelta(hours=self.cfg.session_ttl_hours)
            await db.execute(
                insert(orm.auth_sessions).values(
                    id=uuid.uuid4(),
                    user_id=user.id,
                    access_token=access_token,
                    mfa_verified=False,
                    created_at=now,
                    expires_at=expires_at,
                )
            )
            await db.commit()

        self.storage.set_item(SESSION_TOKEN_KEY, access_token)
        return AuthSession(access_token=access_token, user_id=user.id, email=user.email, expires_at=expires_at)

    async def get_session(self) -> AuthSession | None:
        access_token = self.storage.get_item(SESSION_TOKEN_KEY)
        if not access_token:
            return None

        async with self._db() as db:
            result = await db.execute(
                select(orm.auth_sessions, orm.users.c.email)
                .join(orm.users, orm.users.c.id == orm.auth_sessions.c.user_id)
                .where(orm.auth_sessions.c.access_token == access_token)
            )
            row = result.first()

        if row is None or row.revoked_at is not None or row.expires_at <= self._clock():
            self.storage.remove_item(SESSION_TOKEN_KEY)
            return None
        return AuthSession(
            access_token=row.access_token,
            user_id=row.user_id,
            email=row.email,
            expires_at=row.expires_at,
            mfa_verified=row.mfa_verified,
        )

    async def sign_out(self) -> None:
        access_token = self.storage.get_item(SESSION_TOKEN_KEY)
        if not access_token:
            return

        async with self._db() as db:
            await db.execute(
                update(orm.auth_sessions)
                .where(orm.auth_sessions.c.access_token == access_token)
                .where(orm.auth_sessions.c.revoked_at.is_(None))
                .values(revoked_at=self._clock())
            )
            await db.commit()
        self.storage.remove_item(SESSION_TOKEN_KEY)

    async def _require_session(self) -> AuthSession:
        session = await self.get_session()
        if session is None:
            raise AuthProviderError("Auth session missing!", code=NOT_AUTHENTICATED)
        return session

    async def _load_factor(self, db: AsyncSession, user_id: uuid.UUID, factor_id: str) -> Any:
        result = await db.execute(
            select(orm.mfa_factors)
            .where(orm.mfa_factors.c.id == _parse_id(factor_id, FACTOR_NOT_FOUND))
            .where(orm.mfa_factors.c.user_id == user_id)
        )
        factor = result.first()
        if factor is None:
            raise AuthProviderError(f"Factor {factor_id} not found", code=FACTOR_NOT_FOUND)
        return factor

    async def mfa_enroll(self, friendly_name: str) -> EnrollmentTicket:
        session = await self._require_session()
        secret = totp.generate_totp_secret()
        factor_id = uuid.uuid4()

        async with self._db() as db:
            await db.execute(
                insert(orm.mfa_factors).values(
                    id=factor_id,
                    user_id=session.user_id,
                    friendly_name=friendly_name,
                    factor_type="totp",
                    status=FactorStatus.UNVERIFIED,
                    secret_encrypted=totp.encrypt_totp_secret(secret, session.user_id),
                    created_at=self._clock(),
                )
            )
            await db.commit()

        uri = totp.provisioning_uri(secret, session.email, self.cfg.mfa_issuer)
        return EnrollmentTicket(
            factor_id=str(factor_id),
            qr_code=totp.generate_qr_code_data_url(uri),
            secret=secret,
            uri=uri,
        )

    async def mfa_challenge(self, factor_id: str) -> MfaChallenge:
        session = await self._require_session()
        now = self._clock()
        challenge_id = uuid.uuid4()
        expires_at = now + timedelta(seconds=self.cfg.challenge_ttl_seconds)

        async with self._db() as db:
            factor = await self._load_factor(db, session.user_id, factor_id)
            await db.execute(
                insert(orm.mfa_challenges).values(
                    id=challenge_id, factor_id=factor.id, created_at=now, expires_at=expires_at
                )
            )
            await db.commit()

        return MfaChallenge(challenge_id=str(challenge_id), factor_id=str(factor.id), expires_at=expires_at)

    async def mfa_verify(self, factor_id: str, challenge_id: str, code: str) -> None:
        session = await self._require_session()
        now = self._clock()

        async with self._db() as db:
            factor = await self._load_factor(db, session.user_id, factor_id)
            result = await db.execute(
                select(orm.mfa_challenges)
                .where(orm.mfa_challenges.c.id == _parse_id(challenge_id, CHALLENGE_NOT_FOUND))
                .where(orm.mfa_challenges.c.factor_id == factor.id)
            )
            challenge = result.first()
            if challenge is None or challenge.verified_at is not None:
                raise AuthProviderError(f"Challenge {challenge_id} not found", code=CHALLENGE_NOT_FOUND)

            # a challenge can be answered once, right or wrong
            await db.execute(
                update(orm.mfa_challenges).where(orm.mfa_challenges.c.id == challenge.id).values(verified_at=now)
            )
            await db.commit()

            if challenge.expires_at <= now:
                raise AuthProviderError("MFA challenge has expired, verify against another challenge", code=CHALLENGE_EXPIRED)

            secret = totp.decrypt_totp_secret(factor.secret_encrypted, session.user_id)
            if not totp.verify_totp_code(secret, code):
                raise AuthProviderError("Invalid TOTP code entered", code=VERIFICATION_FAILED)

            if factor.status != FactorStatus.VERIFIED:
                await db.execute(
                    update(orm.mfa_factors)
                    .where(orm.mfa_factors.c.id == factor.id)
                    .values(status=FactorStatus.VERIFIED, verified_at=now)
                )
            await db.execute(
                update(orm.auth_sessions)
                .where(orm.auth_sessions.c.access_token == session.access_token)
                .values(mfa_verified=True)
            )
            await db.commit()

    async def mfa_unenroll(self, factor_id: str) -> None:
        session = await self._require_session()
        async with self._db() as db:
            factor = await self._load_factor(db, session.user_id, factor_id)
            await db.execute(delete(orm.mfa_challenges).where(orm.mfa_challenges.c.factor_id == factor.id))
            await db.execute(delete(orm.mfa_factors).where(orm.mfa_factors.c.id == factor.id))
            await db.commit()

    async def mfa_list_factors(self) -> list[MfaFactor]:
        session = await self._require_session()
        async with self._db() as db:
            result = await db.execute(
                select(orm.mfa_factors)
                .where(orm.mfa_factors.c.user_id == session.user_id)
                .order_by(orm.mfa_factors.c.created_at)
            )
            return [_to_factor(row) for row in result]
