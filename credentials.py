import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from results import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """
    Username and password used for user.login.
    """
    username: str
    password: str


# Zabbix ships with this account on a fresh install
DEFAULT_USER = User(username="Admin", password="zabbix")


def encode_user(user: User) -> Dict[str, str]:
    return {"username": user.username, "password": user.password}


def decode_user(value: Any) -> User:
    """
    Decodes a User from its JSON object form.

    Args:
        value (Any): Parsed JSON, expected {"username": str, "password": str}.

    Returns:
        User: The decoded credentials.

    Raises:
        DecodeError: If a field is missing or is not a string.
    """
    if not isinstance(value, dict):
        raise DecodeError("credentials are not an object")

    fields = {}
    for name in ("username", "password"):
        if name not in value:
            raise DecodeError(f"credentials field '{name}' is missing")
        if not isinstance(value[name], str):
            raise DecodeError(f"credentials field '{name}' is not a string")
        fields[name] = value[name]

    return User(**fields)


def save_user(path: str, user: User):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(encode_user(user), f)
    logger.debug(f"Saved credentials for {user.username} to {path}")


def load_user(path: str) -> User:
    with open(path, "r", encoding="utf-8") as f:
        try:
            value = json.load(f)
        except ValueError as e:
            raise DecodeError(f"credentials file {path} is not valid JSON: {e}") from e
    return decode_user(value)
