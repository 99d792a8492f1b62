from typing import Any, Protocol, Sequence

import jwt

from ..domain.errors import ConfigurationError, InvalidTokenError


class Signer(Protocol):
    def sign(self, payload: dict[str, Any]) -> str: ...

    def verify(self, token: str) -> dict[str, Any]: ...


class JwtSigner:
    """HMAC-signed JWTs. Time claims are checked by the caller against its own clock."""

    def __init__(self, secret: str | None, *, algorithm: str = "HS256") -> None:
        if not secret:
            raise ConfigurationError("signing secret is not configured")
        self._secret = secret
        self.algorithm = algorithm

    @property
    def algorithms(self) -> Sequence[str]:
        return [self.algorithm]

    def sign(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=list(self.algorithms),
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:  # includes DecodeError and InvalidSignatureError
            raise InvalidTokenError("invalid token") from exc
        if not isinstance(payload, dict):
            raise InvalidTokenError("token payload is not an object")
        return payload
