"""blockpaths — block request paths by regex in an ASGI pipeline."""
