"""Identity federation bridge.

Exchanges identity-provider tokens for short-lived data platform tokens whose
subject is a deterministic mapping of the external user id, and installs the
row-level-security schema those tokens are checked against.
"""

__version__ = "0.1.0"
