"""Agent Config Guard — reference integrity for agent deployment descriptors."""

__version__ = "0.1.0"
