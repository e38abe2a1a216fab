"""Security primitives: headers, rate limits, passwords, tokens, credential encryption."""
