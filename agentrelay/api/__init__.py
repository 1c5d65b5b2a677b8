"""
HTTP API for AgentRelay.
"""
