"""Checkout steps and their registry.

Handlers are registered explicitly with the metadata that places them in
the checkout: an ordering key and the route actions they serve. A step keeps
a factory and only creates its handler when the step is processed.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from checkout.config import CheckoutProcess, ShoppingCartSettings
from checkout.exceptions import ConfigurationError
from checkout.workflow.context import CheckoutContext, RouteIdentity

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutRedirect:
    """Where the customer goes next. ``url`` is set for external payment pages."""

    action: str | None = None
    controller: str = "Checkout"
    url: str | None = None

    @property
    def target(self) -> str:
        if self.url:
            return self.url
        return f"/{self.controller}/{self.action}"


CART = CheckoutRedirect(action="Cart", controller="ShoppingCart")
CONFIRM = CheckoutRedirect(action="Confirm")
COMPLETED = CheckoutRedirect(action="Completed")
PAYMENT_METHOD = CheckoutRedirect(action="PaymentMethod")


@dataclass(frozen=True)
class CheckoutStepMetadata:
    order: int
    actions: tuple[str, ...]
    controller: str = "Checkout"
    area: str | None = None
    progress_label: str | None = None

    def __post_init__(self) -> None:
        if not self.actions:
            raise ConfigurationError("A checkout step needs at least one action")
        object.__setattr__(self, "actions", tuple(self.actions))

    @property
    def default_action(self) -> str:
        return self.actions[0]

    def is_step_for(self, action: str, controller: str, area: str | None = None) -> bool:
        return any(RouteIdentity(a, self.controller, self.area).matches(action, controller, area) for a in self.actions)


@dataclass(frozen=True)
class CheckoutHandlerResult:
    success: bool
    errors: tuple[str, ...] = ()
    skip_page: bool = False
    redirect: CheckoutRedirect | None = None


class CheckoutHandler(ABC):
    @abstractmethod
    def metadata(self) -> CheckoutStepMetadata: ...

    @abstractmethod
    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        """Check whether the step is fulfilled, applying ``context.model`` when a selection was posted."""
        ...


@dataclass
class CheckoutStep:
    metadata: CheckoutStepMetadata
    factory: Callable[[], CheckoutHandler]
    _handler: CheckoutHandler | None = field(default=None, repr=False)

    @property
    def order(self) -> int:
        return self.metadata.order

    def get_handler(self) -> CheckoutHandler:
        if self._handler is None:
            self._handler = self.factory()
        return self._handler

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        return self.get_handler().process(context)

    def redirect(self) -> CheckoutRedirect:
        return CheckoutRedirect(action=self.metadata.default_action, controller=self.metadata.controller)


class CheckoutStepRegistry:
    """Checkout steps ordered by ``order``; steps sharing an order keep their registration order.

    In the terminal checkout process the steps collapse into the single
    confirmation step.
    """

    def __init__(self, settings: ShoppingCartSettings) -> None:
        self.settings = settings
        self._steps: list[CheckoutStep] = []
        self._terminal_step: CheckoutStep | None = None

    def register(self, metadata: CheckoutStepMetadata, factory: Callable[[], CheckoutHandler]) -> CheckoutStep:
        step = CheckoutStep(metadata=metadata, factory=factory)
        self._steps.append(step)
        self._steps.sort(key=lambda s: s.order)
        logger.debug("Checkout step registered", order=metadata.order, actions=list(metadata.actions))
        return step

    def register_handler(self, handler: CheckoutHandler) -> CheckoutStep:
        return self.register(handler.metadata(), lambda: handler)

    def register_terminal(self, metadata: CheckoutStepMetadata, factory: Callable[[], CheckoutHandler]) -> None:
        self._terminal_step = CheckoutStep(metadata=metadata, factory=factory)

    def ensure_configured(self) -> None:
        if not self.get_steps():
            raise ConfigurationError("No checkout handlers registered")

    def get_steps(self) -> list[CheckoutStep]:
        if self.settings.checkout_process == CheckoutProcess.TERMINAL and self._terminal_step is not None:
            return [self._terminal_step]
        return list(self._steps)

    def get_step(self, action: str, controller: str, area: str | None = None) -> CheckoutStep | None:
        return next((s for s in self.get_steps() if s.metadata.is_step_for(action, controller, area)), None)

    def get_step_for_route(self, route: RouteIdentity) -> CheckoutStep | None:
        return self.get_step(route.action, route.controller, route.area)

    def get_adjacent_step(self, step: CheckoutStep, forward: bool) -> CheckoutStep | None:
        steps = self.get_steps()
        if forward:
            return min((s for s in steps if s.order > step.order), key=lambda s: s.order, default=None)
        return max((s for s in steps if s.order < step.order), key=lambda s: s.order, default=None)
