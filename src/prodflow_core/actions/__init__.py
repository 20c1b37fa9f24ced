"""Entity actions: validate, authorize, write, audit, invalidate, return a result."""
