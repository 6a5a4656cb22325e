"""JWT authentication with RS256 signing.

Tokens carry the user ID, email and LMS role. Keys are generated per process
until a key store is wired in.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional
from uuid import UUID

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from lms.config import settings


class JWTAuth:
    """JWT authentication handler with RS256 signing."""

    def __init__(self):
        """Initialize JWT auth with RSA key pair."""
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.access_token_expire_minutes

        # Ephemeral keys: regenerated on restart
        self._private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._public_key = self._private_key.public_key()

        self._private_pem = self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        self._public_pem = self.get_public_key_pem()

    def create_access_token(
        self,
        user_id: UUID,
        email: str,
        role: str,
        additional_claims: Optional[Dict] = None,
        expires_in: Optional[timedelta] = None,
    ) -> str:
        """
        Create JWT access token.

        Args:
            user_id: User UUID
            email: User email
            role: User role (Student, Teacher, Administrator)
            additional_claims: Additional JWT claims
            expires_in: Lifetime override, defaults to the configured expiry

        Returns:
            Encoded JWT token
        """
        now = datetime.utcnow()
        expire = now + (expires_in or timedelta(minutes=self.access_token_expire_minutes))

        claims = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "iat": now,
            "exp": expire,
            "type": "access",
        }

        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self._private_pem, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict:
        """
        Verify and decode JWT token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid
        """
        try:
            return jwt.decode(token, self._public_pem, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise jwt.ExpiredSignatureError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise jwt.InvalidTokenError(f"Invalid token: {e}")

    def verify_access_token(self, token: str) -> Dict:
        """
        Verify access token specifically.

        Raises:
            jwt.InvalidTokenError: If not an access token
        """
        payload = self.verify_token(token)

        if payload.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token")

        return payload

    def get_public_key_pem(self) -> bytes:
        """Get public key in PEM format for external verification."""
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


# Global JWT auth instance
jwt_auth = JWTAuth()
