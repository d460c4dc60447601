# CORTX-RA: CORTX cluster resource agents.
# Copyright (c) 2020 Seagate Technology LLC and/or its Affiliates
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
# For any questions about this software or licensing,
# please email opensource@seagate.com or cortx-questions@seagate.com.

from dataclasses import dataclass
from typing import Any, List, Optional
from marshmallow import Schema, fields, validate, ValidationError

from ra.common.log import Log
from ra.common.errors import RaConfigurationMissing, RaInvalidArgument
from ra.core import const
from ra.core.models import InvocationContext


@dataclass(frozen=True)
class Parameter:
    """Declaration of one resource parameter (OCF_RESKEY_<name>)."""

    name: str
    type: str = "string"
    default: Any = None
    required: bool = False
    unique: bool = False
    shortdesc: str = ""
    longdesc: str = ""
    choices: Optional[List[str]] = None

    def field(self) -> fields.Field:
        validators = []
        if self.choices:
            validators.append(validate.OneOf(self.choices))
        kwargs = {"required": self.required, "validate": validators}
        if self.default is not None:
            kwargs["load_default"] = self.default
        if self.type == "boolean":
            return fields.Boolean(**kwargs)
        if self.type == "integer":
            return fields.Int(**kwargs)
        return fields.Str(**kwargs)

    @property
    def env_name(self) -> str:
        return const.OCF_RESKEY_PREFIX + self.name

    @property
    def default_text(self) -> str:
        if self.default is None:
            return ""
        if isinstance(self.default, bool):
            return "true" if self.default else "false"
        return str(self.default)


@dataclass(frozen=True)
class ActionSpec:
    """Declared action with the timeout the supervisor enforces."""

    name: str
    timeout: int
    interval: Optional[int] = None
    depth: Optional[int] = None


class Parameters:
    """Loads and validates resource parameters from the environment."""

    @staticmethod
    def load(parameters: List[Parameter], environ) -> dict:
        """
        Read the declared parameters from environ.

        :param parameters: declared parameters
        :param environ: mapping with OCF_RESKEY_* variables
        :raises RaConfigurationMissing: a required parameter is absent
        :raises RaInvalidArgument: a value fails type or choice validation
        :returns: dict of typed values, defaults applied
        """
        raw = {}
        missing = []
        for param in parameters:
            value = environ.get(param.env_name)
            if value is None or value == "":
                if param.required:
                    missing.append(param.name)
                continue
            raw[param.name] = value
        if missing:
            raise RaConfigurationMissing(
                f"Required parameter(s) not set: {', '.join(missing)}")

        ParamSchema = Schema.from_dict({p.name: p.field() for p in parameters})
        try:
            values = ParamSchema().load(raw)
        except ValidationError as e:
            raise RaInvalidArgument(Parameters.parse_errors(e.messages)) from None
        Log.debug(f"Resource parameters: {values}")
        return values

    @staticmethod
    def parse_errors(errors) -> str:
        error_messages = []
        for each_key in sorted(errors.keys()):
            value = errors[each_key]
            if isinstance(value, list):
                value = ' '.join(str(each) for each in value)
            error_messages.append(f"{each_key}: {value}")
        return '; '.join(error_messages)

    @staticmethod
    def context(action: str, environ) -> InvocationContext:
        """Invocation context: polling interval and check depth."""
        try:
            interval_ms = int(environ.get(const.OCF_META_INTERVAL) or 0)
            check_level = int(environ.get(const.OCF_CHECK_LEVEL) or 0)
        except ValueError as e:
            raise RaInvalidArgument(f"Invalid invocation context: {e}") from None
        return InvocationContext(action=action, interval_ms=interval_ms,
                                 check_level=check_level,
                                 instance=environ.get(const.OCF_RESOURCE_INSTANCE))
