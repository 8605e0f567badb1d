"""Per-(room, domain) controller bookkeeping and action dispatch."""

from growengine.controllers.action_dispatcher import COMMAND_TABLE, ActionDispatcher, build_command
from growengine.controllers.automation_controller import ControllerRegistry

__all__ = ["COMMAND_TABLE", "ActionDispatcher", "ControllerRegistry", "build_command"]
