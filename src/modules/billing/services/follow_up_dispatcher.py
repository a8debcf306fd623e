from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence

from src.core.utils import get_logger
from src.modules.billing.enums.intent_kind import IntentKind
from src.modules.billing.models.lifecycle import SideEffectIntent
from src.modules.billing.services.ports import IFollowUpDispatcher

logger = get_logger(__name__)

IntentHandler = Callable[[SideEffectIntent], None]


class FollowUpDispatcher(IFollowUpDispatcher):
    """
    Fire-and-forget delivery of side-effect intents.

    Handlers are registered per intent kind and run on a small thread pool,
    so charging, crediting or notifying never blocks the lifecycle command
    that produced the intent. Handler failures are logged; the transition
    that produced the intent stays committed. Intents without a handler
    are only logged.
    """

    def __init__(self, max_workers: int = 4, executor: Optional[ThreadPoolExecutor] = None):
        self._handlers: Dict[IntentKind, List[IntentHandler]] = {}
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="billing-follow-up"
        )

    def register_handler(self, kind: IntentKind, handler: IntentHandler) -> None:
        self._handlers.setdefault(kind, []).append(handler)
        logger.info("Registered follow-up handler", kind=kind.value, handler=getattr(handler, "__name__", repr(handler)))

    def dispatch(self, intents: Sequence[SideEffectIntent]) -> List[Future]:
        futures = []
        for intent in intents:
            handlers = self._handlers.get(intent.kind, [])
            if not handlers:
                logger.info(
                    "Follow-up intent without handler",
                    kind=intent.kind.value,
                    subscription_id=intent.subscription_id,
                    amount_cents=intent.amount_cents,
                    template=intent.template,
                )
                continue
            for handler in handlers:
                futures.append(self._executor.submit(self._run, handler, intent))
        return futures

    @staticmethod
    def _run(handler: IntentHandler, intent: SideEffectIntent) -> None:
        try:
            handler(intent)
        except Exception as e:
            logger.error(
                "Follow-up handler failed",
                kind=intent.kind.value,
                subscription_id=intent.subscription_id,
                error=str(e),
            )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
