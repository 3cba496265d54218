import os
from dataclasses import dataclass
from typing import Optional

import dotenv


@dataclass(frozen=True)
class Config:
    """
    Connection settings for a Zabbix API endpoint.

    Usable directly as the conf argument of the zabbix module functions.
    """
    url: str
    token: Optional[str] = None
    username: str = "Admin"
    password: str = "zabbix"
    credentials_file: Optional[str] = None


def load_config(env_file: str = ".env") -> Config:
    """
    Loads settings from an env file and the process environment.

    Args:
        env_file (str): Path of the dotenv file. A missing file is ignored.

    Returns:
        Config: The loaded settings.
    """
    dotenv.load_dotenv(env_file)

    url = os.getenv("ZABBIX_API_URL", "")
    if not url:
        raise RuntimeError("ZABBIX_API_URL must be set")

    return Config(url=url,
                  token=os.getenv("ZABBIX_API_TOKEN") or None,
                  username=os.getenv("ZABBIX_USERNAME", "Admin"),
                  password=os.getenv("ZABBIX_PASSWORD", "zabbix"),
                  credentials_file=os.getenv("ZABBIX_CREDENTIALS_FILE") or None)
