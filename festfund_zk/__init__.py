"""
festfund-zk: private donation commitments, milestones and donor rankings.

Donors commit to an amount with a zero-knowledge proof; the campaign
learns a commitment and a nullifier, never the amount, until the donor
chooses to reveal it.
"""

__version__ = "0.1.0"
