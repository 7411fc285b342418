"""ContractStatus: Global operating status of an oracle or router.

This status is set by administrators and is independent of the peg freeze,
which is driven by feed staleness.

- ``NORMAL``: all operations allowed.
- ``DEPRECATED``: price queries and index computation refused, admin
  operations still allowed.
- ``FROZEN``: everything refused except changing the status.
"""

from __future__ import annotations

from enum import Enum

from .errors import IndexOracleError, OracleDeprecated, OracleStatusFrozen


class ContractStatus(str, Enum):
    """Administrator controlled status."""

    NORMAL = "normal"
    DEPRECATED = "deprecated"
    FROZEN = "frozen"

    def require_can_run(
        self,
        when_normal: bool = True,
        when_deprecated: bool = False,
        when_frozen: bool = False,
    ) -> None:
        """Raise if an operation may not run under the current status.

        :param when_normal: Operation allowed while normal.
        :param when_deprecated: Operation allowed while deprecated.
        :param when_frozen: Operation allowed while frozen.
        :raises OracleDeprecated: If deprecated and not allowed.
        :raises OracleStatusFrozen: If frozen and not allowed.
        """
        if self is ContractStatus.NORMAL and not when_normal:
            raise IndexOracleError("Operation can't be run during normal condition.")
        if self is ContractStatus.DEPRECATED and not when_deprecated:
            raise OracleDeprecated()
        if self is ContractStatus.FROZEN and not when_frozen:
            raise OracleStatusFrozen()
