"""Booking domain - Private lesson booking and payment"""
