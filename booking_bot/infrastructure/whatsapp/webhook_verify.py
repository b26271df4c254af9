from __future__ import annotations

import hmac
import logging
from typing import Mapping


logger = logging.getLogger(__name__)


def verify_get_request(params: Mapping[str, str], expected_token: str) -> str | None:
    """Return the hub challenge when the subscription handshake is valid."""
    if not expected_token:
        logger.error("Verify token not configured")
        return None
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    if mode == "subscribe" and token and hmac.compare_digest(token, expected_token):
        return params.get("hub.challenge")
    return None


def verify_post_signature(body: bytes, signature_header: str | None, app_secret: str | None, env: str) -> bool:
    if not signature_header:
        if env.lower() in {"dev", "local"}:
            logger.warning("Missing X-Hub-Signature-256; accepting in dev mode")
            return True
        return False

    if not app_secret:
        logger.error("Missing app secret for signature verification")
        return False

    algo, _, signature = signature_header.partition("=")
    if algo.lower() != "sha256" or not signature:
        return False

    expected = hmac.new(app_secret.encode("utf-8"), body, "sha256").hexdigest()
    return hmac.compare_digest(expected, signature)
