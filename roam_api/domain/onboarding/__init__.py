"""Onboarding domain - provider signup, phase 1 application and phase 2 entry"""
