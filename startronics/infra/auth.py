from typing import Any

import jwt

ACCESS_TOKEN_ALGORITHMS = ["HS256"]


def decode_access_token(
    token: str,
    secret: str,
    *,
    audience: str | None = None,
    issuer: str | None = None,
) -> dict[str, Any]:
    """Verify an access token issued by the auth provider and return its claims."""
    options = {"require": ["sub", "exp"]}
    return jwt.decode(
        token,
        secret,
        algorithms=ACCESS_TOKEN_ALGORITHMS,
        audience=audience,
        issuer=issuer,
        options=options,
    )
