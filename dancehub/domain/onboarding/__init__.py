"""
Onboarding domain - Stripe Custom account onboarding for a community

Client side: the five-step OnboardingWizard with its validation, progress
tracking and account provisioning. Server side: the /stripe/custom-account routes.
"""
