"""
Anti-forgery tokens for mutating admin actions.
"""

import time
from typing import Any, Dict, Optional

import jwt

from shared.errors import ValidationError


CACHE_ACTION = "ppsc_cache_action"
ALGORITHM = "HS256"


class NonceManager:
    """Issues and verifies short-lived HS256 tokens scoped to one action name."""

    def __init__(self, secret: str, ttl_seconds: int = 86400):
        self.secret = secret
        self.ttl_seconds = ttl_seconds

    def issue(self, action: str = CACHE_ACTION, subject: Optional[str] = None) -> str:
        now = int(time.time())
        claims: Dict[str, Any] = {
            "act": action,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        if subject:
            claims["sub"] = subject
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str], action: str = CACHE_ACTION) -> Dict[str, Any]:
        """Return the token claims, raising ValidationError when it is unusable for ``action``."""
        if not token:
            raise ValidationError("Missing anti-forgery token")
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "act"]},
            )
        except jwt.ExpiredSignatureError:
            raise ValidationError("Anti-forgery token expired")
        except jwt.InvalidTokenError as e:
            raise ValidationError("Invalid anti-forgery token", details={"error": str(e)})

        if claims.get("act") != action:
            raise ValidationError(
                "Anti-forgery token issued for another action",
                details={"expected": action}
            )
        return claims
