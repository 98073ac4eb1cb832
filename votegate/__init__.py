"""
Votegate - community feature voting with automated implementation

Users propose feature requests and vote on them. A request that reaches
the implementation threshold is claimed exactly once, handed to an
external implementation agent, and later reconciled from the agent's
completion callback.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
