from .policy import CommandPolicy
from .runner import run_command

__all__ = ["CommandPolicy", "run_command"]
