"""
Configuration for Crytonix.

- settings: environment-driven process settings (provider keys, cache, env)
- agent_schema: pydantic AgentConfig and YAML agent loading
"""
