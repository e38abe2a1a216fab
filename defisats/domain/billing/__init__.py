"""Billing bounded context: coupons and Lightning payments."""
