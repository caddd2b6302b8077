"""txthook - ACME DNS-01 hook with propagation confirmation."""

from txthook.hook import ChallengeHook
from txthook.poller import PropagationPoller

__all__ = ["ChallengeHook", "PropagationPoller"]
__version__ = "0.1.0"
