"""ABOUTME: TOTP primitives used by the local auth provider
ABOUTME: Handles TOTP secret generation, encryption at rest, QR codes, and code verification"""

import base64
import io
import uuid

import pyotp
import qrcode
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from subdash.config import get_totp_encryption_key

# the step the authenticator apps use, also shown to users as the code countdown
TOTP_INTERVAL_SECONDS = 30


def derive_user_encryption_key(master_key: bytes, user_id: uuid.UUID) -> bytes:
    """Derive a user-specific encryption key from the master key using HKDF.

    This ensures each user has a different encryption key even with the same master key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"subdash-totp-encryption",  # Fixed salt for deterministic derivation
        info=user_id.bytes,
    )
    return hkdf.derive(master_key)


def _fernet_for(user_id: uuid.UUID) -> Fernet:
    user_key = derive_user_encryption_key(get_totp_encryption_key(), user_id)
    # Fernet requires a base64-encoded 32-byte key
    return Fernet(base64.urlsafe_b64encode(user_key))


def generate_totp_secret() -> str:
    """Generate a new random TOTP secret (base32 encoded)."""
    return pyotp.random_base32()


def encrypt_totp_secret(secret: str, user_id: uuid.UUID) -> str:
    """Encrypt a TOTP secret for storage using Fernet symmetric encryption."""
    return _fernet_for(user_id).encrypt(secret.encode("utf-8")).decode("ascii")


def decrypt_totp_secret(encrypted_secret: str, user_id: uuid.UUID) -> str:
    """Decrypt a TOTP secret from storage.

    Raises cryptography.fernet.InvalidToken if the secret was encrypted for another user
    or with another master key.
    """
    return _fernet_for(user_id).decrypt(encrypted_secret.encode("ascii")).decode("utf-8")


def provisioning_uri(secret: str, email: str, issuer: str) -> str:
    return pyotp.TOTP(secret, interval=TOTP_INTERVAL_SECONDS).provisioning_uri(name=email, issuer_name=issuer)


def generate_qr_code_data_url(uri: str) -> str:
    """Render a provisioning URI as a PNG data URL for the authenticator app."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer)
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode("ascii")

    return f"data:image/png;base64,{img_base64}"


def verify_totp_code(secret: str, code: str) -> bool:
    """Verify a 6-digit code against a secret."""
    totp = pyotp.TOTP(secret, interval=TOTP_INTERVAL_SECONDS)
    # valid_window=1 allows codes from the previous and next window to cover clock drift
    return totp.verify(code, valid_window=1)
