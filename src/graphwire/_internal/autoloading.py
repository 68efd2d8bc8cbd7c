from __future__ import annotations

import datetime
import decimal
import pathlib
import uuid
from dataclasses import dataclass
from typing import Any

from graphwire._internal.type_checks import is_interface, locate_type


@dataclass(frozen=True, slots=True)
class UnboundTypePolicy:
    """Internal policy deciding which unbound types a builder may construct."""

    ignored_base_types: tuple[type[Any], ...] = (
        pathlib.PurePath,
        datetime.datetime,
        datetime.date,
        datetime.time,
        datetime.timedelta,
        uuid.UUID,
        decimal.Decimal,
    )

    def locate_loadable(self, service_id: object) -> type[Any] | None:
        """Return the class ``service_id`` names when it can be built unbound.

        Builtins, interface-like classes, metaclasses and value types from
        the standard library are never loadable.

        Args:
            service_id: Class or dotted path being checked.

        """
        candidate = locate_type(service_id)
        if candidate is None:
            return None
        if candidate.__module__ == "builtins":
            return None
        if is_interface(candidate):
            return None
        if issubclass(candidate, type):
            return None
        if issubclass(candidate, self.ignored_base_types):
            return None
        return candidate
