"""
Dependency Injection Container.
"""

from dependency_injector import containers, providers

from src.core.di.modules.billing import BillingContainer
from src.core.di.modules.core import CoreContainer


class Container(containers.DeclarativeContainer):
    """
    Dependency Injection Container.

    Composes the core infrastructure container with the billing module
    container (repositories, services, lifecycle).
    """

    wiring_config = containers.WiringConfiguration(
        modules=[
            "src.modules.billing.workers.maintenance",
        ]
    )

    core = providers.Container(CoreContainer)

    billing = providers.Container(BillingContainer, core=core)
