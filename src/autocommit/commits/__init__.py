"""Commit content, the provider gateway and the commit executor."""

from autocommit.commits.content import ContentGenerator, GeneratedContent
from autocommit.commits.executor import CommitExecutor, ExecutionResult
from autocommit.commits.gateway import GitHubGateway, RepositoryGateway

__all__ = [
    "ContentGenerator",
    "GeneratedContent",
    "CommitExecutor",
    "ExecutionResult",
    "GitHubGateway",
    "RepositoryGateway",
]
