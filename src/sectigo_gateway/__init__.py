"""
sectigo_gateway — certificate authority gateway for the Sectigo Certificate Manager.

Synchronizes the authority's certificate inventory into a local system of record
and brokers enrollment (new, renewal and reissue alike) and revocation requests.
"""

__version__ = "0.1.0"
