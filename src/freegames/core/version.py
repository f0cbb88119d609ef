import logging

import httpx

from .config import settings

logger = logging.getLogger(__name__)

PROJECT_NAME = "epicgames-freegames-node"
GITHUB_COMMITS_URL = f"https://api.github.com/repos/claabs/{PROJECT_NAME}/commits/{{branch}}"


async def check_for_update(
    skip_version_check: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Log the running build and warn when a newer commit exists on its branch.

    Returns True only when an update is known to be available.
    """
    commit_sha, branch, distro = settings.COMMIT_SHA, settings.BRANCH, settings.DISTRO
    logger.info(f"Starting {PROJECT_NAME} (commit={commit_sha}, branch={branch}, distro={distro})")

    if not (commit_sha and branch) or skip_version_check:
        logger.debug(f"Skipping version check (skipVersionCheck={skip_version_check})")
        return False

    logger.debug(f"Performing version check for {branch}@{commit_sha}")
    try:
        async with httpx.AsyncClient(timeout=15.0, transport=transport) as client:
            response = await client.get(GITHUB_COMMITS_URL.format(branch=branch))
            response.raise_for_status()
            latest_sha = response.json().get("sha")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Update check API call failed")
        logger.debug(f"Update check error: {e}")
        return False

    logger.debug(f"Latest sha from GitHub API: {latest_sha}")
    if latest_sha and latest_sha != commit_sha:
        logger.warning(f"An update for {PROJECT_NAME} is available. Pull the latest image to upgrade.")
        return True
    return False


def log_version_on_error() -> None:
    if settings.COMMIT_SHA or settings.BRANCH or settings.DISTRO:
        logger.warning(
            f"Current version: commit={settings.COMMIT_SHA}, branch={settings.BRANCH}, distro={settings.DISTRO}"
        )
