"""
Memory module - tiered long-term memory.

Tiers:
- user_global: one user, every agent
- agent_global: one agent, every user
- interaction: one user with one agent

Storage: Mem0 platform (external), addressed by scope key
"""
