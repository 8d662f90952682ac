"""
Property catalog.

Minimal listing model referenced by conversations. Listing CRUD is out of
scope; properties are managed through the admin.
"""
