"""
Third-party API integrations (LINE Messaging API).
"""
