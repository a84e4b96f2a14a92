"""Flat routers for the smaller API surfaces"""
