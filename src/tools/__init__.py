"""
Resource tool groups.

Each group declares the fixed operation set of one Kanta resource.
``DEFAULT_GROUPS`` is the order in which the dispatcher registers them.
"""

from .base import ToolDefinition, ToolGroup
from .customers import customer_tools
from .users import user_tools
from .persons import person_tools
from .misc import firm_tools, structure_tools

DEFAULT_GROUPS = [customer_tools, user_tools, person_tools, firm_tools, structure_tools]

__all__ = [
    "ToolDefinition",
    "ToolGroup",
    "customer_tools",
    "user_tools",
    "person_tools",
    "firm_tools",
    "structure_tools",
    "DEFAULT_GROUPS",
]
