"""Workspace lifecycle.

Provisions, tracks and tears down the collaborative workspace bound to each
event:
- operations: permission-checked mutations on one workspace
- orchestrator: state machine, event hooks, retention sweep
- scheduler: recurring sweep timer
- bridge: entry point for the event component
"""
