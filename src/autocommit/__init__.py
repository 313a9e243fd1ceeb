"""autocommit - scheduled commit engine for GitHub automation rules.

On every tick the engine checks, for each active rule, whether "now" is
inside the rule's local daily window on a scheduled weekday, whether the
daily quota of successful commits is used up, and whether pacing allows
another commit; it then appends a marker line to the rule's target file
through the GitHub contents API and records the attempt.

Packages:
    autocommit.core          errors, logging, settings, database access
    autocommit.scheduling    time windows, pacing, locks, the tick driver
    autocommit.commits       content generation, gateway, executor
    autocommit.repositories  rules, attempt log, credentials
    autocommit.cli           ``autocommit`` command line
"""

__version__ = "0.1.0"
