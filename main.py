import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace
from typing import Optional

from config import Config, load_config
from credentials import User, load_user, save_user
from results import DecodeError, Err, Ok, Result, flat, to_result
from zabbix import attempt, login_task, request_task, version_task

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Call the Zabbix JSON-RPC API")
    parser.add_argument("--env", "-env", default=".env", help="dotenv file to load settings from")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("version", help="Print the API version")

    login_parser = commands.add_parser("login", help="Log in and print the session token")
    login_parser.add_argument("--save", help="Write the credentials used to this file")

    call_parser = commands.add_parser("call", help="Call any API method and print the result as JSON")
    call_parser.add_argument("method", help="Method name, e.g. host.get")
    call_parser.add_argument("--params", default="{}", help="Method parameters as a JSON object")

    return parser


def get_user(conf: Config) -> User:
    """
    Credentials from the stored credentials file if there is one, otherwise from the environment.
    """
    if conf.credentials_file and os.path.exists(conf.credentials_file):
        logger.debug(f"Using credentials from {conf.credentials_file}")
        return load_user(conf.credentials_file)
    return User(username=conf.username, password=conf.password)


def report(result) -> int:
    match result:
        case Ok(value):
            print(value if isinstance(value, str) else json.dumps(value, indent=2))
            return 0
        case Err(message):
            print(message, file=sys.stderr)
            return 1


async def run_version(conf: Config) -> int:
    return report(to_result(flat(await attempt(version_task(conf)))))


async def run_login(conf: Config, user: User, save: Optional[str] = None) -> int:
    result = to_result(flat(await attempt(login_task(conf, user))))
    if isinstance(result, Ok) and save:
        save_user(save, user)
        logger.info(f"Saved credentials to {save}")
    return report(result)


async def run_call(conf: Config, user: User, method: str, params: dict) -> int:
    token = conf.token
    if token is None:
        logged_in = await attempt(login_task(conf, user))
        match logged_in:
            case Ok(Result(value)):
                token = value
            case _:
                return report(to_result(flat(logged_in)))

    response = request_task(replace(conf, token=token), method, params)
    return report(to_result(flat(await attempt(response))))


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        conf = load_config(args.env)
    except RuntimeError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.command == "version":
        return asyncio.run(run_version(conf))

    try:
        user = get_user(conf)
    except (OSError, DecodeError) as e:
        logger.error(f"Could not read credentials: {e}")
        return 1

    if args.command == "login":
        return asyncio.run(run_login(conf, user, args.save))

    try:
        params = json.loads(args.params)
    except ValueError as e:
        logger.error(f"--params is not valid JSON: {e}")
        return 1
    if not isinstance(params, dict):
        logger.error("--params must be a JSON object")
        return 1

    return asyncio.run(run_call(conf, user, args.method, params))


if __name__ == "__main__":
    sys.exit(main())
