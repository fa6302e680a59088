from fastapi import Cookie, Header


def forwarded_bearer(
    authorization: str = Header(default=""),
    auth_token: str = Cookie(default=""),
) -> str:
    """
    The capture endpoint acts on behalf of the signed-in user, so their token is
    passed through untouched. Header wins over the cookie; empty means anonymous
    and the upstream decides what to do with that.
    """
    value = (authorization or "").strip()
    if value.lower().startswith("bearer "):
        return value[7:].strip()
    if value:
        return value
    return (auth_token or "").strip()
