"""DanceHub - community payments onboarding, teacher availability and private lesson booking"""
