"""Operation surface: CRUD over registered resources.

Rules for this package:

1. No session.query() calls - querying goes through the translator, writes
   through the entity repository
2. Every public function returns an envelope dict and never raises
"""
