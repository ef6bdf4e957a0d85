"""Recording-time DDL statement filter."""

import re
from typing import Iterable, Optional, Union

# Statements generated by MySQL servers and Amazon RDS monitoring that carry
# no schema information.
DEFAULT_DDL_FILTER: list[str] = [
    r"DROP TEMPORARY TABLE IF EXISTS .+ /\* generated by server \*/",
    r"INSERT INTO mysql.rds_heartbeat2\(.*\) values \(.*\) ON DUPLICATE KEY UPDATE value = .*",
    r"DELETE FROM mysql.rds_sysinfo.*",
    r"INSERT INTO mysql.rds_sysinfo\(.*\) values \(.*\)",
    r"DELETE FROM mysql.rds_monitor.*",
    r"FLUSH RELAY LOGS.*",
    r"flush relay logs.*",
    r"SAVEPOINT .*",
]


class StatementFilter:
    """Classifies DDL statements as noise to suppress before recording.

    Each pattern must match the whole statement (leading and trailing
    whitespace ignored). Matching is case-insensitive and a statement is
    suppressed as soon as any pattern matches.
    """

    def __init__(
        self,
        patterns: Iterable[Union[str, re.Pattern]] = (),
        flags: int = re.IGNORECASE | re.DOTALL,
    ):
        self._patterns: list[re.Pattern] = [
            p if isinstance(p, re.Pattern) else re.compile(p, flags) for p in patterns
        ]

    @classmethod
    def default(cls) -> "StatementFilter":
        return cls(DEFAULT_DDL_FILTER)

    @property
    def patterns(self) -> list[str]:
        return [p.pattern for p in self._patterns]

    def matching_pattern(self, statement: Optional[str]) -> Optional[str]:
        """Return the first pattern matching statement, or None."""
        if statement is None:
            return None
        text = statement.strip()
        for pattern in self._patterns:
            if pattern.fullmatch(text):
                return pattern.pattern
        return None

    def should_suppress(self, statement: Optional[str]) -> bool:
        return self.matching_pattern(statement) is not None

    def __len__(self) -> int:
        return len(self._patterns)


__all__ = ["DEFAULT_DDL_FILTER", "StatementFilter"]
