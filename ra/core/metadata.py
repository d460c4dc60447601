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

from xml.sax.saxutils import escape, quoteattr

from ra.common.template import Template

_AGENT = Template("""<?xml version="1.0"?>
<!DOCTYPE resource-agent SYSTEM "ra-api-1.dtd">
<resource-agent name={name} version={version}>
<version>1.0</version>

<longdesc lang="en">
{longdesc}
</longdesc>
<shortdesc lang="en">{shortdesc}</shortdesc>

<parameters>
{parameters}
</parameters>

<actions>
{actions}
</actions>
</resource-agent>
""")

_PARAMETER = Template("""<parameter name={name} unique="{unique}" required="{required}">
<longdesc lang="en">
{longdesc}
</longdesc>
<shortdesc lang="en">{shortdesc}</shortdesc>
<content type="{type}" default={default} />
</parameter>""")


class MetaData:
    """Static self description of an agent, rendered from its declarations."""

    @staticmethod
    def render(agent_cls) -> str:
        parameters = "\n".join(_PARAMETER.render(
            name=quoteattr(param.name), unique=int(param.unique),
            required=int(param.required), longdesc=escape(param.longdesc or param.shortdesc),
            shortdesc=escape(param.shortdesc), type=param.type,
            default=quoteattr(param.default_text)) for param in agent_cls.PARAMETERS)
        actions = "\n".join(MetaData._action(action) for action in agent_cls.ACTIONS)
        return _AGENT.render(name=quoteattr(agent_cls.NAME),
                             version=quoteattr(agent_cls.VERSION),
                             longdesc=escape(agent_cls.LONGDESC),
                             shortdesc=escape(agent_cls.SHORTDESC),
                             parameters=parameters, actions=actions)

    @staticmethod
    def _action(action) -> str:
        attrs = [f'name="{action.name}"', f'timeout="{action.timeout}s"']
        if action.interval is not None:
            attrs.append(f'interval="{action.interval}s"')
        if action.depth is not None:
            attrs.append(f'depth="{action.depth}"')
        return f"<action {' '.join(attrs)} />"
