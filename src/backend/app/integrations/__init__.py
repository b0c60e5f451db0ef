"""External Integrations Module.

- Device alarm channel (plain-text alarm messages)
"""
