"""Registration and eligibility engine services.

Modules here hold the business rules; views and admin actions only resolve
the active role and delegate.
"""
