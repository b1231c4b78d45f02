"""openfm-api - Query and setup API for an FM repeater network node."""

__version__ = "1.0.0"
__author__ = "openfm-api Team"
__description__ = (
    "A lightweight API server exposing station configuration, activity "
    "reports and the password-protected setup form of an FM node"
)
