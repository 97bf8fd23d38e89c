"""
Build identifier resolution.

Maps the build token a user typed to the path segment the server expects.
"""

LATEST_BUILD = "latest"
LAST_SUCCESSFUL_BUILD = "lastSuccessfulBuild"


def resolve_build(build: str) -> str:
    """
    Resolve a user-supplied build token to a server path segment.

    An empty token and ``"latest"`` both map to the last successful build
    alias; anything else (a build number or another server alias) is
    returned unchanged.
    """
    if build in ("", LATEST_BUILD):
        return LAST_SUCCESSFUL_BUILD
    return build
