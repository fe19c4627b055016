"""
daowiz
======

Deploys Vision Beacon DAO instances and recovers the ones deployed before.

Structure:
- payload: publishes module payloads and DAO metadata to IPFS
- deployer: deploys the Idea contract with a metadata root
- scanner: replays chain history to find previously deployed instances
- cli: the `new` and `list` commands
"""

__version__ = "0.1.0"
__author__ = "Vision Team"
