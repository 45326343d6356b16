"""
Business services for the claims backend.

Import concrete services from their modules, e.g.
``from claimflow.services.claims_service import ClaimsService``.
"""
