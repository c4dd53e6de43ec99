# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Repository reference parser.

Turns a GitHub URL into an (owner, repo) pair. Both forms are accepted:

    https://github.com/<owner>/<repo>[.git]
    git@github.com:<owner>/<repo>[.git]

The owner is the second-to-last `/` segment (with anything up to a `:`
dropped, which covers the SSH form), the repo is the last segment without a
trailing `.git`. Nothing here checks that the repository exists; a bad
reference shows up later as a fetch failure.
"""

from snpm.publish.errors import InvalidReferenceError
from snpm.publish.models import RepositoryReference

DEFAULT_HOST = "github.com"


def parse_repository_url(url: str, host: str = DEFAULT_HOST) -> RepositoryReference:
    """
    Extract owner and repo from a repository URL.

    Args:
        url: HTTPS or SSH style repository URL.
        host: Host marker the URL must contain.

    Returns:
        The parsed RepositoryReference.

    Raises:
        InvalidReferenceError: Wrong host, or an empty owner or repo.
    """
    if not url or host not in url:
        raise InvalidReferenceError()

    segments = url.strip().rstrip("/").split("/")
    if len(segments) < 2:
        raise InvalidReferenceError()

    owner = segments[-2]
    if ":" in owner:
        owner = owner.split(":", 1)[1]

    repo = segments[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    if not owner or not repo:
        raise InvalidReferenceError()

    return RepositoryReference(owner=owner, repo=repo)
