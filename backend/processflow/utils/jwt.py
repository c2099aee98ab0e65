"""JWT Bearer Token Decoding"""
import jwt
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.enums import UserRole
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class JWTValidator:
    """Validates bearer tokens signed with the shared application secret"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": True, "require": ["sub"]}
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from a validated token

        Expected claims: sub (user id), email, name, role.
        """
        claims = self.validate_token(token)

        role_claim = str(claims.get("role") or UserRole.USER.value).upper()
        try:
            role = UserRole(role_claim)
        except ValueError:
            raise AuthenticationError(f"Unknown role in token: {role_claim}")

        email = claims.get("email") or ""
        return ActorContext(
            user_id=str(claims["sub"]),
            email=email,
            display_name=claims.get("name") or email or None,
            role=role
        )

    def issue_token(self, actor: ActorContext) -> str:
        """Sign a token for the given actor (seed scripts and tests)"""
        claims = {
            "sub": actor.user_id,
            "email": actor.email,
            "name": actor.display_name,
            "role": actor.role.value,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_jwt_validator().get_actor_context(authorization)
