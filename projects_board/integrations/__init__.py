"""
External integrations for projects-board.
"""

from .github import (
    GitHubProjectsClient,
    GitHubSource,
    StaticGitHubSource,
    parse_project_node,
)

__all__ = [
    "GitHubProjectsClient",
    "GitHubSource",
    "StaticGitHubSource",
    "parse_project_node",
]
