"""Adapters to external systems: Stripe and the DanceHub HTTP API"""
