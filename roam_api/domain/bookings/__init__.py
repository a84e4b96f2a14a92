"""Bookings domain - provider booking views and status transitions"""
