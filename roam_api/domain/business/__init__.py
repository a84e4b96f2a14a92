"""Business domain - provider-side business profile data"""
