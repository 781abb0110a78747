"""
Utilities for placing the agent in the invoking user's home directory.
"""
import getpass
import os
from typing import Optional

from cluster_agent.utils import get_logger

logger = get_logger(__name__)

HOME_BASE_DIR = "/home"


def get_login_name() -> Optional[str]:
    """
    Resolves the login name of the user running the agent.

    :return: The login name, or None if it cannot be determined
    :rtype: Optional[str]
    """
    try:
        return getpass.getuser()
    except (KeyError, OSError) as e:
        logger.error(f"Couldn't access login username: {e}")
        return None


def determine_home_directory(login_name: str) -> str:
    """
    Picks the home directory for ``login_name``: the account's home from the
    user database when it is the current user, otherwise ``/home/<login>``.
    """
    home = os.path.expanduser("~")
    if home and home != "~" and os.path.isdir(home) and os.path.basename(home) == login_name:
        return home
    return os.path.join(HOME_BASE_DIR, login_name)


def change_to_home_directory() -> Optional[str]:
    """
    Changes the working directory to the invoking user's home directory.
    Failures are logged and leave the working directory unchanged.

    :return: The new working directory, or None if it was not changed
    :rtype: Optional[str]
    """
    login_name = get_login_name()
    if not login_name:
        return None
    logger.info(f"Login detected: {login_name}")

    home_dir = determine_home_directory(login_name)
    try:
        os.chdir(home_dir)
    except OSError as e:
        logger.warning(f"Couldn't change directory to {home_dir}: {e}")
        return None
    logger.info(f"Working directory set to {home_dir}")
    return home_dir
