"""Built-in kernels, bootable by function id."""

from . import observer_bot, policy_agent, provider_exec, run_code
from .provider_exec import IProviderClient, ProviderExec

BUILTIN_KERNELS = {
    "observer_bot": observer_bot.main,
    "policy_agent": policy_agent.main,
    "provider_exec": provider_exec.main,
    "run_code": run_code.main,
}

__all__ = ["BUILTIN_KERNELS", "IProviderClient", "ProviderExec"]
