"""Top-level package for maven-scm-checkout.

Checks out the SCM sources of a Maven artifact (or of an explicit SCM URL),
optionally rewriting the checked-out module to the next ``-SNAPSHOT`` version
together with the dependency that points at it.
"""

from .config import CheckoutOptions, build_options
from .errors import CheckoutError
from .logging_config import configure_logging
from .models import CheckoutResult, CheckoutState
from .orchestrator import CheckoutOrchestrator

__all__ = [
    "CheckoutError",
    "CheckoutOptions",
    "CheckoutOrchestrator",
    "CheckoutResult",
    "CheckoutState",
    "build_options",
    "configure_logging",
]
