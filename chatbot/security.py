# chatbot/security.py
import hmac
import json
import logging

from fastapi import Header, Request

from chatbot.errors import InvalidApiKey


def require_api_key(request: Request, x_api_key: str = Header(None, alias="x-api-key")):
    expected = request.app.state.settings.api_secret_key
    # an unset secret rejects every call rather than disabling the check
    if not x_api_key or not expected or not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        logging.warning(json.dumps({"event": "auth.invalid_key", "path": request.url.path}))
        raise InvalidApiKey()
