import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Check the X-API-Key header of a messaging-layer call against APP_API_KEY.

    Raises:
        HTTPException: 401 if the header is absent or the key does not match.
        ConfigurationError: If APP_API_KEY is not configured.
    """
    expected_key = request.app.state.helper_config.get_string_val("APP_API_KEY")
    if x_api_key is None or not secrets.compare_digest(x_api_key.encode("utf-8"), expected_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
