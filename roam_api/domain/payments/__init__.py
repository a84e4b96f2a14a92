"""Payments domain - Stripe Connect payouts and Plaid bank linking"""
