"""Data access for rules, the attempt log and owner credentials."""

from autocommit.repositories.credentials import CredentialRepository
from autocommit.repositories.rules import RuleCreate, RuleRepository
from autocommit.repositories.run_log import AttemptCreate, AttemptOutcome, RunLogRepository

__all__ = [
    "AttemptCreate",
    "AttemptOutcome",
    "CredentialRepository",
    "RuleCreate",
    "RuleRepository",
    "RunLogRepository",
]
