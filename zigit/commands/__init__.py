"""
Command-line commands for zigit.

Each module defines one click command operating through the
LifecycleManager injected by ``cli_utils.lifecycle_command``.
"""
