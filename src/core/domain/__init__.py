"""Domain models (Pydantic v2). No HTTP, LDAP or CLI imports."""
