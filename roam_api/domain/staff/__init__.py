"""Staff domain - invitations, manual staff creation and staff onboarding"""
