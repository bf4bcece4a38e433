# toolhub/__init__.py
"""
Tool-Subsystem: Preflight-Checks und Lifecycle des Vision-One-MCP-Servers.
"""
