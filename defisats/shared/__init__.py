"""
Cross-context plumbing: error mapping, logging setup and the security
helpers (headers, rate limits, passwords, JWTs, credential encryption).
"""
