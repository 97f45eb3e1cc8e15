"""
Consent Engine Extension Points

Public API:
    HookRegistry:  filter and action registry
    hook_registry: default registry instance
"""

from .registry import HookRegistry, hook_registry

__all__ = ["HookRegistry", "hook_registry"]
