"""
Burn aggregation services: RPC access, provider pool, retry, block
resolution, log aggregation and fleet orchestration.
"""
