"""Email/password sign-in against the Firebase Auth REST API."""
import logging
from dataclasses import dataclass

import requests

from tracker.errors import AuthError

logger = logging.getLogger(__name__)

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{action}?key={key}"
TIMEOUT = 20


@dataclass(frozen=True)
class Account:
    uid: str
    email: str
    id_token: str = ""


def _call(action: str, api_key: str, email: str, password: str) -> Account:
    if not api_key:
        raise AuthError("FIREBASE_WEB_API_KEY is not set.")
    url = IDENTITY_URL.format(action=action, key=api_key)
    payload = {"email": email, "password": password, "returnSecureToken": True}
    try:
        r = requests.post(url, json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        raise AuthError(f"Could not reach the sign-in service: {e}") from e
    if r.status_code != 200:
        try:
            message = r.json().get("error", {}).get("message", "")
        except ValueError:
            message = ""
        logger.warning("%s failed for %s: %s", action, email, message or r.status_code)
        raise AuthError(message or f"{action} failed ({r.status_code})")
    data = r.json()
    return Account(uid=data["localId"], email=data.get("email", email), id_token=data.get("idToken", ""))


def sign_in(api_key: str, email: str, password: str) -> Account:
    return _call("signInWithPassword", api_key, email, password)


def sign_up(api_key: str, email: str, password: str) -> Account:
    return _call("signUp", api_key, email, password)
