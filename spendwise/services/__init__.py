"""
Services Package

External integrations: on-device storage, the hosted remote store and
exchange rates.
"""
