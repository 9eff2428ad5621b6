"""Scheduling domain - Teacher availability slots, calendar grid and slot offerability"""
