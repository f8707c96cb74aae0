from __future__ import annotations

from typing import TYPE_CHECKING

from src.tools.builtins.cancel_meeting import CancelMeetingTool
from src.tools.builtins.channels import ListChannelsTool
from src.tools.builtins.help import HelpTool
from src.tools.builtins.members import AddMemberTool, ListMembersTool
from src.tools.builtins.select_team import SelectTeamTool
from src.tools.builtins.team_info import TeamInfoTool
from src.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from src.auth.resolver import ContextResolver
    from src.directory.client import DirectoryClient


def register_builtins(
    registry: ToolRegistry,
    directory: DirectoryClient,
    resolver: ContextResolver,
) -> None:
    """Register the sample Teams catalog with the registry.

    Does not freeze the registry; the caller does that once startup is done.
    """
    registry.register(TeamInfoTool(directory))
    registry.register(HelpTool(registry))
    registry.register(ListChannelsTool(directory))
    registry.register(ListMembersTool(directory))
    registry.register(AddMemberTool(directory))
    registry.register(SelectTeamTool(resolver))
    registry.register(CancelMeetingTool(directory))
