import jwt
from flask import request, current_app


class InvalidTokenError(Exception):
    pass


def bearer_token_from_request():
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_access_token(token: str) -> dict:
    """
    Verifies an access token issued by the identity provider and returns its
    claims. Audience is only enforced when IDP_JWT_AUDIENCE is configured.
    """
    secret = current_app.config.get("IDP_JWT_SECRET")
    if not secret:
        raise InvalidTokenError("Identity provider secret not configured")

    algorithm = current_app.config.get("IDP_JWT_ALGORITHM", "HS256")
    audience = current_app.config.get("IDP_JWT_AUDIENCE")

    try:
        if audience:
            claims = jwt.decode(token, secret, algorithms=[algorithm], audience=audience)
        else:
            claims = jwt.decode(
                token, secret, algorithms=[algorithm], options={"verify_aud": False}
            )
    except jwt.PyJWTError as exc:
        raise InvalidTokenError(str(exc)) from exc

    if not claims.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return claims
